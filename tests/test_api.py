import pytest
from fastapi.testclient import TestClient

from uilocate.api import create_app, set_locator
from uilocate.core.errors import OracleTransportError
from uilocate.core.locator import ElementLocator
from uilocate.vision.imaging import encode_image

pytestmark = pytest.mark.service


@pytest.fixture
def client_for(make_oracle, recorder):
    """Test client whose locator answers from scripted replies."""

    def _make(replies):
        oracle, transport = make_oracle(replies)
        set_locator(ElementLocator(oracle=oracle, recorder=recorder))
        return TestClient(create_app()), transport

    yield _make
    set_locator(None)


def test_health_and_root(client_for):
    client, _ = client_for([])
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/").json()["locate"] == "/api/v1/locate"


def test_locate_returns_detection_contract(client_for, screenshot, xml):
    client, transport = client_for(
        [
            xml.detection(("submit_button", 440, 385, 120, 30)),
            xml.detection(("submit_button", 0, 0, 300, 200)),
        ]
    )

    response = client.post("/api/v1/locate", json={"image_base64": encode_image(screenshot)})

    assert response.status_code == 200
    body = response.json()
    assert body["analysis_method"] == "progressive"
    assert body["total_api_calls"] == 2
    button = body["detected_buttons"][0]
    assert button["reference_name"] == "submit_button"
    assert button["refinement_successful"] is True
    assert set(button["center_coordinates"]) == {"x", "y"}


def test_locate_accepts_data_url(client_for, screenshot, xml):
    client, _ = client_for(["<detected_buttons></detected_buttons>"])
    payload = {"image_base64": "data:image/png;base64," + encode_image(screenshot), "target": "login"}

    response = client.post("/api/v1/locate", json=payload)

    assert response.status_code == 200
    assert response.json()["detected_buttons"] == []


def test_invalid_image_is_bad_request(client_for):
    client, transport = client_for([])
    response = client.post("/api/v1/locate", json={"image_base64": "not an image!"})
    assert response.status_code == 400
    assert transport.calls == 0


def test_unknown_mode_is_rejected_by_validation(client_for, screenshot):
    client, _ = client_for([])
    response = client.post(
        "/api/v1/locate", json={"image_base64": encode_image(screenshot), "mode": "sideways"}
    )
    assert response.status_code == 422


def test_oracle_outage_maps_to_bad_gateway(client_for, screenshot):
    client, _ = client_for([OracleTransportError("unreachable", attempts=3)])
    response = client.post("/api/v1/locate", json={"image_base64": encode_image(screenshot)})
    assert response.status_code == 502


def test_debug_endpoints_after_run(client_for, screenshot, xml):
    client, _ = client_for([xml.detection(("ok_button", 10, 10, 40, 20)), "<detected_buttons></detected_buttons>"])
    client.post("/api/v1/locate", json={"image_base64": encode_image(screenshot)})

    bundle = client.get("/api/v1/debug/export").json()
    summary = client.get("/api/v1/debug/summary").json()

    assert len(bundle["llm_conversations"]) == 2
    assert bundle["session_metadata"]["status"] == "completed"
    assert summary["conversations"] == 2
