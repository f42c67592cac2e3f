from flask import Flask, request, jsonify, send_file
import os
import threading
import uuid
import datetime
import logging
import tempfile
import shutil

import core_logic
from exceptions import InsufficientData
from parsers import recycle_parser

# Set up logging for the Flask app
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

app = Flask(__name__)

# In-memory store for background tasks
# { 'task_id': {'status': 'in_progress/completed/failed', 'message': '', 'result': {...}} }
# A finished task is dropped once its status has been read.
tasks = {}
tasks_lock = threading.Lock()
MAX_FINISHED_TASKS = 50


def _prune_finished_tasks():
    # caller holds tasks_lock; dicts keep insertion order, so oldest go first
    finished = [tid for tid, t in tasks.items() if t['status'] in ('completed', 'failed')]
    for tid in finished[:max(0, len(finished) - MAX_FINISHED_TASKS)]:
        del tasks[tid]


def run_in_background(task_id, func, *args, **kwargs):
    """Helper to run a function in a background thread and update task status."""
    try:
        result = func(*args, **kwargs)
        update = {'status': 'completed', 'message': result.get('message', 'Task completed.'), 'result': result}
    except Exception as e:
        logger.exception(f"Background task {task_id} failed:")
        update = {'status': 'failed', 'message': str(e)}
    with tasks_lock:
        tasks[task_id] = update
        _prune_finished_tasks()


def _folder_from_request():
    data = request.get_json(silent=True) or {}
    folder_path = data.get('folder_path')
    if not folder_path:
        return None, data, (jsonify({"status": "error", "message": "No folder_path provided"}), 400)
    if not os.path.isdir(folder_path):
        return None, data, (jsonify({"status": "error", "message": f"Invalid folder path: {folder_path}"}), 400)
    return folder_path, data, None


@app.route('/api/decode', methods=['POST'])
def api_decode():
    uploads = request.files.getlist('files')
    if not uploads:
        return jsonify({"status": "error", "message": "No files uploaded"}), 400

    results = []
    for upload in uploads:
        try:
            record = recycle_parser.decode(upload.read())
        except InsufficientData as e:
            logger.warning(f"Could not decode upload {upload.filename}: {e}")
            results.append({"file": upload.filename, "status": "error", "message": str(e)})
            continue
        row = recycle_parser.record_to_row(upload.filename, record)
        results.append({
            "file": upload.filename,
            "status": "success",
            "line": row["line"],
            "record": {
                "header": record.header,
                "file_size": record.file_size,
                "deletion_time": record.deletion_time,
                "name_length": record.name_length,
                "file_name": record.file_name,
                "deleted_at": row["timestamp"],
                "calendar_time": record.calendar_time._asdict(),
            },
        })
    return jsonify(results), 200


@app.route('/api/parse_folder', methods=['POST'])
def api_parse_folder():
    folder_path, _, error = _folder_from_request()
    if error:
        return error

    task_id = str(uuid.uuid4())
    with tasks_lock:
        tasks[task_id] = {'status': 'in_progress', 'message': 'Task started...'}
    threading.Thread(target=run_in_background, args=(task_id, core_logic.parse_folder_core, folder_path)).start()

    return jsonify({"status": "success", "message": "Parsing initiated in background", "task_id": task_id}), 202


@app.route('/api/task_status/<task_id>', methods=['GET'])
def api_task_status(task_id):
    with tasks_lock:
        task = tasks.get(task_id)
        if task and task['status'] != 'in_progress':
            del tasks[task_id]
    if not task:
        return jsonify({'status': 'error', 'message': 'Task not found'}), 404
    return jsonify(task)


def _export(folder_path, kind, build):
    """Scan folder_path, write the export with build(filepath, rows) and send it."""
    scan = core_logic.parse_folder_core(folder_path)
    if scan['status'] != 'success':
        return jsonify(scan), 400

    filename = f"recycle_{kind}_{datetime.datetime.now().strftime('%Y%m%d%H%M%S')}.{kind}"
    temp_dir = tempfile.mkdtemp()
    filepath = os.path.join(temp_dir, filename)
    try:
        result = build(filepath, scan['records'])
    except Exception as e:
        shutil.rmtree(temp_dir, ignore_errors=True)
        logger.exception(f"Error exporting {kind}:")
        return jsonify({"status": "error", "message": f"Failed to export {kind}: {str(e)}"}), 500

    if result['status'] != 'success':
        shutil.rmtree(temp_dir, ignore_errors=True)
        return jsonify(result), 200 if result['status'] == 'info' else 500

    response = send_file(filepath, as_attachment=True, download_name=filename)

    @response.call_on_close
    def cleanup_file():
        shutil.rmtree(temp_dir, ignore_errors=True)
        logger.info(f"Cleaned up temporary directory: {temp_dir}")

    return response


@app.route('/api/export_csv', methods=['POST'])
def api_export_csv():
    folder_path, _, error = _folder_from_request()
    if error:
        return error
    return _export(folder_path, "csv", core_logic.generate_csv_report)


@app.route('/api/export_pdf', methods=['POST'])
def api_export_pdf():
    folder_path, data, error = _folder_from_request()
    if error:
        return error
    report_details = {k: v for k, v in data.items() if k != 'folder_path'}
    report_details['Scanned Folder'] = folder_path
    return _export(
        folder_path,
        "pdf",
        lambda filepath, rows: core_logic.generate_pdf_report_core(filepath, rows, report_details),
    )


if __name__ == '__main__':
    app.run(debug=True, port=5000)
