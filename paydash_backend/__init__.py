"""Payments dashboard backend package.

Reconciles settlement and authorization reports into per day / country /
payment channel metrics. Run the API standalone via Uvicorn:

    python -m uvicorn paydash_backend.api_app:app --host 127.0.0.1 --port 8000

or reconcile two files from the command line:

    python -m paydash_backend.cli report --settlement stl.csv --authorization auth.csv
"""
