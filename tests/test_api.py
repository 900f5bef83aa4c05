import pytest
from fastapi.testclient import TestClient

from conftest import CAPTCHA, PASSWORD, REGNO, table
from webstream.api import create_app
from webstream.imagehost import InlineImageHost
from webstream.portals.academics import TIMETABLE_URL
from webstream.portals.attendance import SUBJECT_ATTENDANCE_URL


@pytest.fixture
def client(proxy, portal):
    portal.pages[TIMETABLE_URL] = "<html><body>" + table(
        ["Day", "1", "2", "3", "4", "5", "6", "7", "8"],
        ["Monday", "CSE201", "", "", "", "", "", "", ""],
    ) + "</body></html>"
    with TestClient(create_app(proxy=proxy, image_host=InlineImageHost())) as client:
        yield client


def login(client, secret=PASSWORD):
    rsp = client.post("/captcha", json={"identifier": REGNO})
    assert rsp.status_code == 200
    return client.post("/login", json={"identifier": REGNO, "secret": secret, "captchaAnswer": CAPTCHA})


def test_captcha_is_a_png(client):
    rsp = client.post("/captcha", json={"identifier": REGNO})

    assert rsp.headers["content-type"] == "image/png"
    assert rsp.content.startswith(b"captcha-")


def test_login_then_scrape(client, portal):
    portal.pages[SUBJECT_ATTENDANCE_URL] = "<html><body>" + table(
        ["Code", "Subject", "Total", "Present", "Absent", "%"],
        ["", "Total", "20", "18", "2", "90"],
    ) + "</body></html>"

    rsp = login(client)
    assert rsp.status_code == 200
    token = rsp.json()["token"]

    body = client.post("/attendance", json={"token": token}).json()
    assert body["success"] is True
    assert body["attendance"]["percentage"] == "90"
    assert body["lastUpdated"]


def test_rejected_login(client):
    rsp = login(client, secret="wrong")

    assert rsp.status_code == 401
    assert rsp.json() == {"success": False, "error": "Invalid Username or Password"}


def test_login_without_captcha(client):
    rsp = client.post("/login", json={"identifier": REGNO, "secret": PASSWORD, "captchaAnswer": CAPTCHA})

    assert rsp.status_code == 400
    assert rsp.json()["success"] is False


def test_scrape_with_unknown_token(client):
    rsp = client.post("/timetable", json={"token": "nope"})

    assert rsp.status_code == 401
    assert rsp.json()["error"] == "Invalid or expired session token"


def test_scrape_failure_names_category(client, portal):
    token = login(client).json()["token"]
    portal.pages[SUBJECT_ATTENDANCE_URL] = "<html><body>maintenance</body></html>"

    rsp = client.post("/attendance", json={"token": token, "forceRefresh": True})

    assert rsp.status_code == 500
    assert rsp.json()["category"] == "attendance"

    # the session is still good for other categories
    assert client.post("/timetable", json={"token": token}).status_code == 200


def test_expired_portal_session_then_relogin(client, portal):
    token = login(client).json()["token"]
    portal.expire_all()

    rsp = client.post("/timetable", json={"token": token})
    assert rsp.status_code == 401

    captcha = client.post("/relogin-captcha", json={"token": token})
    assert captcha.headers["content-type"] == "image/png"
    rsp = client.post("/relogin", json={"token": token, "captchaAnswer": CAPTCHA})
    new_token = rsp.json()["newToken"]

    assert client.post("/timetable", json={"token": new_token}).status_code == 200
    assert client.post("/timetable", json={"token": token}).status_code == 401


def test_logout(client):
    token = login(client).json()["token"]

    assert client.post("/logout", json={"token": token}).json() == {"success": True}
    assert client.post("/logout", json={"token": token}).json() == {"success": True}
    assert client.post("/timetable", json={"token": token}).status_code == 401


def test_grievance_with_blank_field(client):
    token = login(client).json()["token"]

    rsp = client.post("/grievances", json={
        "token": token, "grievanceType": "Academic", "subject": "Lab hours", "description": " ",
    })

    assert rsp.status_code == 400


def test_grievance_submitted(client, portal):
    token = login(client).json()["token"]

    rsp = client.post("/grievances", json={
        "token": token, "grievanceType": "Academic", "subject": "Lab hours", "description": "Lab closes early",
    })

    body = rsp.json()
    assert body["success"] is True
    assert body["grievances"][0]["subject"] == "Lab hours"
    assert len(portal.submissions) == 1


def test_browser_not_ready(client, browser):
    browser.connected = False

    rsp = client.post("/captcha", json={"identifier": REGNO})

    assert rsp.status_code == 503
    assert client.get("/health").json() == {"success": True, "browserReady": False}


def test_dead_context_is_a_json_error(client, proxy):
    token = login(client).json()["token"]
    proxy.sessions.get(token).context.closed = True

    rsp = client.post("/timetable", json={"token": token})

    assert rsp.status_code == 500
    assert rsp.headers["content-type"] == "application/json"
    assert rsp.json()["success"] is False
    assert rsp.json()["category"] == "timetable"


def test_scrape_while_browser_is_down(client, browser):
    token = login(client).json()["token"]
    browser.connected = False

    rsp = client.post("/timetable", json={"token": token})

    assert rsp.status_code == 503
    assert rsp.json()["success"] is False


def test_static_catalogs_and_chatbot(client):
    assert client.get("/messMenu").json()["success"] is True
    assert "messMenuGirls" in client.get("/messMenuGirls").json()

    reply = client.post("/chatbot", json={"message": "dbms notes"}).json()
    assert reply["subject"] == "dbms"
