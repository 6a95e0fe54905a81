from datetime import date

import pytest
from fastapi.testclient import TestClient

from dimversion import Dimensions, make_engine, on
from dimversion.config import load_settings


@pytest.fixture
def client():
    app = Dimensions.create_app(
        engine=make_engine("sqlite://"),
        dimensions={"customer": {}, "employee": {"closed_end": True, "track_current_pointer": True}},
    )
    with TestClient(app) as c:
        yield c


def _record(client, key, attributes, effective, dimension="customer", **extra):
    return client.post(
        f"/dimensions/{dimension}/{key}/versions",
        json={"attributes": attributes, "effective": effective, **extra},
    )


def test_health_lists_dimensions(client):
    body = client.get("/health").json()
    assert body == {"status": "running", "dimensions": ["customer", "employee"]}


def test_record_and_read_back(client):
    first = _record(client, 101, {"income": "Medium"}, "2024-01-01")
    assert first.status_code == 201
    second = _record(client, 101, {"income": "High"}, "2024-06-01")
    assert second.status_code == 201
    assert second.json()["version"]["valid_from"] == "2024-06-01"

    current = client.get("/dimensions/customer/101/current").json()
    assert current["surrogate_id"] == second.json()["surrogate_id"]
    assert current["attributes"] == {"income": "High"}

    history = client.get("/dimensions/customer/101/history").json()
    assert [(v["valid_from"], v["valid_to"]) for v in history] == [
        ("2024-01-01", "2024-06-01"),
        ("2024-06-01", None),
    ]

    then = client.get("/dimensions/customer/101/as-of", params={"at": "2024-03-15"})
    assert then.json()["attributes"] == {"income": "Medium"}

    listing = client.get("/dimensions/customer/current").json()
    assert [v["natural_key"] for v in listing] == ["101"]


def test_error_mapping(client):
    _record(client, 101, {"income": "High"}, "2024-06-01")

    out_of_order = _record(client, 101, {"income": "Low"}, "2023-12-01")
    assert out_of_order.status_code == 409
    assert out_of_order.json()["error"] == "OutOfOrderEffectiveDate"

    unknown = _record(client, 555, {"income": "Low"}, "2024-01-01", require_existing=True)
    assert unknown.status_code == 404

    assert client.get("/dimensions/customer/555/current").status_code == 404
    assert client.get("/dimensions/customer/555/history").status_code == 404
    assert client.get("/dimensions/supplier/1/current").json()["error"] == "UnknownDimension"
    assert (
        client.get("/dimensions/customer/101/as-of", params={"at": "2020-01-01"}).status_code
        == 404
    )
    assert (
        client.get("/dimensions/customer/101/as-of", params={"at": "yesterday"}).status_code
        == 422
    )


def test_closed_end_dimension_over_http(client):
    _record(client, 101, {"department": "Sales"}, "2023-01-15", dimension="employee")
    moved = _record(client, 101, {"department": "Marketing"}, "2024-05-20", dimension="employee")

    history = client.get("/dimensions/employee/101/history").json()
    assert history[0]["valid_to"] == "2024-05-19"
    assert {v["current_pointer"] for v in history} == {moved.json()["surrogate_id"]}


def test_create_app_from_settings():
    settings = load_settings(
        {"DIMVERSION_DATABASE_URL": "sqlite://", "DIMVERSION_DIMENSIONS": "product"}
    )
    app = Dimensions.create_app(settings=settings)
    with TestClient(app) as c:
        assert c.get("/health").json()["dimensions"] == ["product"]
    assert Dimensions.instance().manager("product").dimension == "product"


def test_recorded_version_is_the_row_just_written(client):
    @on.create("customer")
    def follow_up(version):
        Dimensions.instance().manager("customer").record_new_version(
            version.natural_key, {"income": "High"}, date(2024, 6, 1)
        )

    created = _record(client, 101, {"income": "Medium"}, "2024-01-01").json()

    assert created["version"]["surrogate_id"] == created["surrogate_id"]
    assert created["version"]["attributes"] == {"income": "Medium"}
    assert created["version"]["valid_from"] == "2024-01-01"
    current = client.get("/dimensions/customer/101/current").json()
    assert current["attributes"] == {"income": "High"}
