# ACPN Live API Test Suite
#
# Runs the Flask server out of process against a temporary SQLite file and
# exercises it over HTTP (pytest + httpx).
#
# Run with: pytest tests/api
# Against a running server: TEST_EXTERNAL_SERVER=1 TEST_BACKEND_URL=... pytest tests/api
