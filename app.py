import os
import uuid
import logging
import threading
from datetime import datetime, timedelta
from flask import Flask, render_template_string, request, jsonify, send_file, session
from werkzeug.utils import secure_filename

from disbursementconverter.amounts import format_currency
from disbursementconverter.converter import DisbursementConverter, rows_dataframe
from disbursementconverter.exceptions import ConversionError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'your-secret-key-change-this-in-production')
app.config['UPLOAD_FOLDER'] = os.environ.get('UPLOAD_FOLDER', 'uploads')
app.config['MAX_CONTENT_LENGTH'] = 100 * 1024 * 1024  # 100MB max file size
app.config['JOB_TTL'] = timedelta(hours=2)

# Ensure upload directory exists
os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

# Store processing jobs in memory (use Redis/database for production)
processing_jobs = {}

INDEX_HTML = """<!doctype html>
<title>Disbursement Converter</title>
<h1>Disbursement Converter</h1>
<p>PDF &rarr; Excel (one worksheet per page)</p>
<form method="post" action="/upload" enctype="multipart/form-data">
  <input type="file" name="file" accept="application/pdf">
  <button type="submit">Convert</button>
</form>
"""


def _remove_file(path):
  if path and os.path.exists(path):
    try:
      os.remove(path)
    except OSError as e:
      logger.warning(f"Could not remove {path}: {e}")


def cleanup_old_jobs():
  """Clean up jobs older than JOB_TTL"""
  cutoff = datetime.now() - app.config['JOB_TTL']
  jobs_to_remove = [job_id for job_id, job in processing_jobs.items()
                    if job.get('created_at', datetime.now()) < cutoff]

  for job_id in jobs_to_remove:
    job = processing_jobs.pop(job_id, None)
    if job:
      _remove_file(job.get('file', {}).get('path'))
      _remove_file(job.get('output_file'))


@app.route('/')
def index():
  # Clean up old jobs on page load
  cleanup_old_jobs()
  return render_template_string(INDEX_HTML)


@app.route('/upload', methods=['POST'])
def upload_file():
  file = request.files.get('file')
  if file is None:
    return jsonify({'success': False, 'error': 'No file uploaded'}), 400

  if file.filename == '':
    return jsonify({'success': False, 'error': 'No file selected'}), 400

  if not file.filename.lower().endswith('.pdf'):
    return jsonify({'success': False, 'error': 'Please upload a valid PDF file'}), 400

  # Generate unique job ID
  job_id = str(uuid.uuid4())

  filename = secure_filename(file.filename) or 'upload.pdf'
  file_path = os.path.join(app.config['UPLOAD_FOLDER'], f"{job_id}_{filename}")
  file.save(file_path)

  processing_jobs[job_id] = {
    'id': job_id,
    'status': 'processing',
    'file': {
      'path': file_path,
      'original_name': file.filename,
      'size': os.path.getsize(file_path)
    },
    'created_at': datetime.now(),
    'progress': 0,
    'message': 'Starting processing...',
    'total_pages': 0,
    'extracted_records': 0
  }

  # Store job ID in session for recovery
  session['current_job_id'] = job_id

  # Start processing in background thread
  thread = threading.Thread(target=process_disbursement_pdf, args=(job_id,))
  thread.daemon = True
  thread.start()

  return jsonify({
    'success': True,
    'job_id': job_id,
    'message': 'Upload successful, processing started'
  })


def process_disbursement_pdf(job_id, converter=None):
  """Convert the uploaded PDF of a job and record progress on the job"""
  job = processing_jobs.get(job_id)
  if not job:
    return

  def progress_callback(progress, message):
    job['progress'] = min(progress, 99)
    job['message'] = message

  try:
    converter = converter or DisbursementConverter()
    output_file = os.path.join(app.config['UPLOAD_FOLDER'], f"{job_id}_output.xlsx")
    pages = converter.convert(job['file']['path'], output_file, progress_callback=progress_callback)

    df = rows_dataframe(pages)
    preview = df.head(5).copy()
    preview['amount'] = preview['amount'].map(format_currency)
    job['status'] = 'completed'
    job['progress'] = 100
    job['output_file'] = output_file
    job['total_pages'] = len(pages)
    job['extracted_records'] = len(df)
    job['message'] = f'Extracted {len(df)} records from {len(pages)} pages'
    job['results'] = {
      'sheets': [page.sheet_name for page in pages],
      'amount_by_sheet': [format_currency(df.loc[df['page'] == n, 'amount'].sum())
                 for n in range(1, len(pages) + 1)],
      'preview': preview.astype(object).where(preview.notna(), None).to_dict('records'),
      'file_size': os.path.getsize(output_file)
    }

  except ConversionError as e:
    logger.error(f"Job {job_id} failed: {e}")
    _fail_job(job, e)
  except Exception as e:
    logger.exception(f"Job {job_id} failed unexpectedly")
    _fail_job(job, e)

  job['completed_at'] = datetime.now()


def _fail_job(job, error):
  job['status'] = 'error'
  job['progress'] = 0
  job['message'] = f'Processing failed: {error}'
  job['error'] = str(error)


@app.route('/status/<job_id>')
def get_status(job_id):
  """Get processing status for a job"""
  job = processing_jobs.get(job_id)
  if not job:
    return jsonify({'success': False, 'error': 'Job not found'}), 404

  response_data = {
    'success': True,
    'job_id': job_id,
    'status': job['status'],
    'progress': job['progress'],
    'message': job['message'],
    'total_pages': job.get('total_pages', 0),
    'extracted_records': job.get('extracted_records', 0)
  }

  if job['status'] == 'completed' and job.get('results'):
    response_data['results'] = job['results']
  elif job['status'] == 'error':
    response_data['error'] = job.get('error', 'Unknown error')

  return jsonify(response_data)


@app.route('/download/<job_id>')
def download_results(job_id):
  """Download the workbook of a completed job"""
  job = processing_jobs.get(job_id)
  if not job:
    return jsonify({'error': 'Job not found'}), 404

  if job['status'] != 'completed':
    return jsonify({'error': 'Job not completed yet'}), 400

  if not job.get('output_file') or not os.path.exists(job['output_file']):
    return jsonify({'error': 'Results file not found'}), 404

  base_name = os.path.splitext(job['file']['original_name'])[0] or 'disbursement'
  return send_file(
    os.path.abspath(job['output_file']),
    as_attachment=True,
    download_name=f'{base_name}.xlsx',
    mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
  )


@app.route('/recover')
def recover_session():
  """Recover session data if page was refreshed during processing"""
  job_id = session.get('current_job_id')
  if job_id and job_id in processing_jobs:
    return jsonify({
      'success': True,
      'job_id': job_id,
      'status': processing_jobs[job_id]['status']
    })
  return jsonify({'success': False})


if __name__ == '__main__':
  app.run(debug=True, host='0.0.0.0', port=8080)
