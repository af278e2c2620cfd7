import math

import pytest
from sqlalchemy import create_engine, event

from weathersrv.messages import RequestError
from weathersrv.weather_list import check_input, tr_weather_list

SCHEMA = [
    "CREATE TABLE WRT_GRID_INFO (LONGITUDE REAL, LATITUDE REAL, KMA_X INTEGER,"
    " KMA_Y INTEGER, KMA_LAND TEXT, KMA_TEMP TEXT)",
    "CREATE TABLE DFS_ODAM_CURR (GRID_X INTEGER, GRID_Y INTEGER, DATA_TYPE TEXT,"
    " GRID_VAL REAL, BASE_DATE INTEGER, BASE_TIME INTEGER)",
    "CREATE TABLE DFS_VSRT_CURR (GRID_X INTEGER, GRID_Y INTEGER, DATA_TYPE TEXT,"
    " GRID_VAL REAL, FCST_DATE INTEGER, FCST_TIME INTEGER)",
    "CREATE TABLE OBSERVER_CURR_DUST (GRID_X INTEGER, GRID_Y INTEGER, PM25 REAL, GRADE TEXT)",
]

SEOUL = {"key": "seoul", "lat": 37.57, "lng": 126.98}
BUSAN = {"key": "busan", "lat": 35.1, "lng": 129.0}


def _distance(lat1, lng1, lat2, lng2):
    return math.hypot(lat1 - lat2, lng1 - lng2)


def _insert(engine, table, rows):
    marks = ", ".join("?" * len(rows[0]))
    with engine.begin() as conn:
        conn.exec_driver_sql(f"INSERT INTO {table} VALUES ({marks})", rows)


def _delete(engine, table, where):
    with engine.begin() as conn:
        conn.exec_driver_sql(f"DELETE FROM {table} WHERE {where}")


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'weather.db'}")

    @event.listens_for(eng, "connect")
    def _register(dbapi_conn, _record):
        dbapi_conn.create_function("DISTANCE_WGS84", 4, _distance)

    with eng.begin() as conn:
        for statement in SCHEMA:
            conn.exec_driver_sql(statement)

    _insert(eng, "WRT_GRID_INFO", [(126.98, 37.57, 60, 127, "L1", "T1"), (129.0, 35.1, 98, 76, "L2", "T2")])
    _insert(
        eng,
        "DFS_ODAM_CURR",
        [(60, 127, "PTY", 0.0, 20231231, 1200), (98, 76, "PTY", 1.0, 20231231, 1200)],
    )
    _insert(
        eng,
        "DFS_VSRT_CURR",
        [(60, 127, "SKY", 1.0, 20231231, 1100), (60, 127, "SKY", 4.0, 20231231, 1300)],
    )
    _insert(eng, "OBSERVER_CURR_DUST", [(60, 127, 20.0, "2"), (98, 76, 80.0, "4")])
    return eng


def test_weather_list_states_and_dust(engine):
    body = tr_weather_list(engine, None, "E", {"body": {"list": [SEOUL, BUSAN]}})
    assert body["list"] == [
        {"key": "seoul", "WS": "C", "DG": "2", "PM25": 20.0},
        {"key": "busan", "WS": "R", "DG": "4", "PM25": 80.0},
    ]


def test_weather_list_empty_list(engine):
    assert tr_weather_list(engine, None, "E", {"body": {"list": []}}) == {"list": []}


def test_undecided_state_keeps_previous_entry(engine):
    _delete(engine, "DFS_ODAM_CURR", "GRID_X = 60")
    _insert(engine, "DFS_ODAM_CURR", [(60, 127, "PTY", 5.0, 20231231, 1200)])
    body = tr_weather_list(engine, None, "E", {"body": {"list": [BUSAN, SEOUL]}})
    assert [entry["WS"] for entry in body["list"]] == ["R", "R"]


def test_undecided_first_entry_is_question_mark(engine):
    _delete(engine, "DFS_ODAM_CURR", "GRID_X = 60")
    _insert(engine, "DFS_ODAM_CURR", [(60, 127, "PTY", 5.0, 20231231, 1200)])
    body = tr_weather_list(engine, None, "E", {"body": {"list": [SEOUL]}})
    assert body["list"][0]["WS"] == "?"


@pytest.mark.parametrize("table", ["DFS_ODAM_CURR", "DFS_VSRT_CURR", "OBSERVER_CURR_DUST"])
def test_missing_rows_are_system_errors(engine, table):
    _delete(engine, table, "GRID_X = 60")
    with pytest.raises(RequestError) as info:
        tr_weather_list(engine, None, "E", {"body": {"list": [SEOUL]}})
    assert info.value.code == 9901


def test_body_must_be_object(engine):
    with pytest.raises(RequestError) as info:
        tr_weather_list(engine, None, "E", {"body": "list"})
    assert info.value.code == 9005


@pytest.mark.parametrize(
    "body, code",
    [
        ({}, 9003),
        ({"list": None}, 9003),
        ({"list": "seoul"}, 9005),
        ({"list": ["seoul"]}, 9005),
        ({"list": [{"lat": 37.5, "lng": 126.9}]}, 9003),
        ({"list": [{"key": "a", "lng": 126.9}]}, 9003),
        ({"list": [{"key": "a", "lat": 37.5}]}, 9003),
        ({"list": [{"key": 1, "lat": 37.5, "lng": 126.9}]}, 9005),
        ({"list": [{"key": "a", "lat": "37.5", "lng": 126.9}]}, 9005),
        ({"list": [{"key": "a", "lat": 37.5, "lng": False}]}, 9005),
        ({"list": [SEOUL, {"key": "b", "lat": 37.5}]}, 9003),
    ],
)
def test_check_input_errors(body, code):
    with pytest.raises(RequestError) as info:
        check_input(body)
    assert info.value.code == code


def test_check_input_accepts_integer_coordinates(engine):
    check_input({"list": [{"key": "a", "lat": 37, "lng": 127}]})
    body = tr_weather_list(engine, None, "E", {"body": {"list": [{"key": "a", "lat": 37, "lng": 127}]}})
    assert body["list"][0]["key"] == "a"