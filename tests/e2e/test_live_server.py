import os
import threading
import time

import requests

import arbitration.main as mainmod
from arbitration.case_manager import CaseManager
from arbitration.config import AIConfig


def _start_uvicorn_in_thread(port: int):
    # start uvicorn programmatically to make the test self-contained
    from uvicorn import Config, Server

    config = Config("arbitration.main:app", host="127.0.0.1", port=port, log_level="info")
    server = Server(config)

    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()

    # wait for server to become responsive
    url = f"http://127.0.0.1:{port}/health"
    for _ in range(40):
        try:
            r = requests.get(url, timeout=1)
            if r.status_code == 200:
                return server, thread
        except requests.RequestException:
            time.sleep(0.25)
    raise RuntimeError("Uvicorn server failed to start in time")


def test_case_flow_over_http():
    port = int(os.environ.get('ARBITRATION_TEST_PORT', '8011'))
    base = os.environ.get('ARBITRATION_BASE_URL', f'http://127.0.0.1:{port}')

    server = None
    # If ARBITRATION_USE_EXTERNAL_SERVER is set, assume an external server is running
    use_external = os.environ.get('ARBITRATION_USE_EXTERNAL_SERVER')
    use_real_api = os.environ.get('ARBITRATION_USE_REAL_API')
    saved_manager = mainmod.manager
    try:
        # the in-process server serves the demo verdict unless real calls are opted in
        if not use_real_api:
            mainmod.manager = CaseManager(AIConfig())
        if not use_external:
            server, _ = _start_uvicorn_in_thread(port)

        r = requests.post(base + '/api/cases', json={
            'title': 'Fence repair',
            'dispute_amount': 1200,
            'party_a_text': 'The fence was never finished.',
            'party_b_text': 'The fence was finished on time.',
        }, timeout=5)
        assert r.status_code == 200
        case_id = r.json()['id']

        r = requests.post(f'{base}/api/cases/{case_id}/process', timeout=120)
        assert r.status_code == 200
        body = r.json()
        assert body['status'] == 'completed'
        assert body['results']['final_verdict']
    finally:
        mainmod.manager = saved_manager
        if server:
            # request shutdown
            server.should_exit = True
            # give server a moment to shutdown
            time.sleep(0.5)
