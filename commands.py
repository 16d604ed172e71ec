# Quick reference commands (run from repo root). These are comments only; copy/paste as needed.

# Install the project with test dependencies
# python -m pip install -e ".[test]"

# Run the full test suite
# python -m pytest

# Run focused test files
# python -m pytest tests/test_dedup.py tests/test_throttle.py
# python -m pytest tests/test_scheduler.py tests/test_worker_main.py
# python -m pytest tests/test_alerts.py
# python -m pytest tests/test_subs_store.py
# python -m pytest tests/test_ebird_client.py tests/test_taxonomy.py tests/test_geocode.py
# python -m pytest tests/test_api_subscriptions.py tests/test_validation.py tests/test_security_headers.py

# Start the API locally (with env vars loaded)
# python -m dotenv run -- python -m uvicorn app.api:app --reload

# Run the notifier worker (loops every NOTIFIER_INTERVAL_MINUTES)
# python -m dotenv run -- python main.py

# Run a single notifier cycle and exit
# NOTIFIER_RUN_ONCE=true python -m dotenv run -- python main.py

# Preview what each subscription would be sent, without sending or committing
# python -m dotenv run -- python -m scripts.preview_alerts

# Inspect the database (example queries)
# python -m scripts.db_shell "SELECT id,phone,species_code,radius_miles,last_notified_at FROM subscriptions"
# python -m scripts.db_shell "SELECT * FROM subscriptions ORDER BY created_at DESC LIMIT 5"
