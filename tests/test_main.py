import random

import pytest

import main
from conftest import FakeClock, align, pairs_by_kind
from database import ProgressDatabase
from levels import get_catalog
from main import (SessionDriver, choose_level, handle_command, load_settings, run_console,
                  save_settings)
from puzzle import BoardGenerator, Phase, PuzzleSession


def test_settings_defaults_when_missing(tmp_path):
    assert load_settings(str(tmp_path / "none.json")) == main.DEFAULT_SETTINGS

def test_settings_round_trip_fills_missing_keys(tmp_path):
    path = str(tmp_path / "settings.json")
    save_settings({"db_mode": "remote"}, path)
    settings = load_settings(path)
    assert settings["db_mode"] == "remote"
    assert settings["server_url"] == main.DEFAULT_SERVER

def test_corrupt_settings_fall_back(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    assert load_settings(str(path)) == main.DEFAULT_SETTINGS

def test_local_database_factory(tmp_path, monkeypatch):
    monkeypatch.setattr("database._db", None)
    db = main.get_game_database(mode="remote", server_url=None,
                                db_file=str(tmp_path / "local.db"))
    assert type(db) is ProgressDatabase
    db.close()


@pytest.fixture
def session(make_session, mixed_level):
    return make_session(mixed_level)

def test_driver_ticks_only_while_playing(session):
    clock = FakeClock(0.0)
    driver = SessionDriver(session, time_source=clock)

    clock.advance(5)
    assert driver.update() == 0  # ready

    session.start()
    assert driver.update() == 0  # starts counting
    clock.advance(2.5)
    assert driver.update() == 2
    assert session.state.time_remaining_seconds == 28
    clock.advance(0.5)
    assert driver.update() == 1

    session.pause()
    clock.advance(10)
    assert driver.update() == 0
    session.resume()
    driver.update()
    clock.advance(1)
    assert driver.update() == 1
    assert session.state.time_remaining_seconds == 26

def test_driver_stops_at_expiry(session):
    clock = FakeClock(0.0)
    driver = SessionDriver(session, time_source=clock)
    session.start()
    driver.update()
    clock.advance(100)
    assert driver.update() == 30
    assert session.phase is Phase.FAILED

def test_handle_command(session):
    assert handle_command(session, "start")
    assert session.phase is Phase.PLAYING
    shape_id = session.board.shapes[0].shape_id
    handle_command(session, f"select {shape_id}")
    assert session.state.selected == shape_id
    handle_command(session, "rotate 0")
    assert session.state.moves_count == 1
    handle_command(session, "hint")
    assert session.state.hints_remaining == 2
    handle_command(session, "pause")
    assert session.phase is Phase.PAUSED
    assert handle_command(session, "select x")
    assert handle_command(session, "")
    assert not handle_command(session, "quit")

def test_console_plays_to_completion(make_session, circle_level, capsys):
    session = make_session(circle_level)
    align(session.board.shapes)
    moves = ["start"]
    for first, second in pairs_by_kind(session.board):
        moves += [f"select {first.shape_id}", f"select {second.shape_id}"]
    moves.append("quit")
    lines = iter(moves)

    run_console(session, SessionDriver(session, time_source=FakeClock()),
                read_line=lambda prompt: next(lines))

    assert session.phase is Phase.COMPLETED
    assert "Level complete!" in capsys.readouterr().out

def test_console_offers_reset_after_the_attempt_ends(make_session, circle_level, capsys):
    session = make_session(circle_level)
    align(session.board.shapes)
    moves = ["start"]
    for first, second in pairs_by_kind(session.board):
        moves += [f"select {first.shape_id}", f"select {second.shape_id}"]
    moves += ["reset", "quit"]
    lines = iter(moves)

    run_console(session, SessionDriver(session, time_source=FakeClock()),
                read_line=lambda prompt: next(lines))

    out = capsys.readouterr().out
    assert "Level complete!" in out
    assert "Type reset to try again" in out
    assert session.phase is Phase.READY
    assert session.state.score == 0
    assert not session.board.is_cleared()

def test_console_stops_on_end_of_input(session):
    def read_line(prompt):
        raise EOFError

    run_console(session, SessionDriver(session, time_source=FakeClock()), read_line=read_line)
    assert session.phase is Phase.READY

def test_console_checks_clock_before_command(session, capsys):
    clock = FakeClock(0.0)
    session.start()
    driver = SessionDriver(session, time_source=clock)
    driver.update()
    lines = iter([f"select {session.board.shapes[0].shape_id}", "quit"])

    def read_line(prompt):
        clock.advance(60)
        return next(lines)

    run_console(session, driver, read_line=read_line)
    assert session.phase is Phase.FAILED
    assert session.state.selected is None
    assert "Time's up!" in capsys.readouterr().out


def replay_first_level(db, times):
    catalog = get_catalog()
    for seed in range(times):
        session = PuzzleSession(catalog.get_level(1), progress_store=db, catalog=catalog,
                                generator=BoardGenerator(random.Random(seed)))
        session.start()
        align(session.board.shapes)
        for first, second in pairs_by_kind(session.board):
            session.select_shape(first.shape_id)
            session.select_shape(second.shape_id)
        assert session.phase is Phase.COMPLETED

def test_default_level_stays_inside_catalog_after_replays(progress_db):
    replay_first_level(progress_db, 30)
    assert progress_db.get_current_level() > len(get_catalog())

    level = choose_level(progress_db, get_catalog(), ["whirljig"])
    assert level.id == len(get_catalog())

def test_default_level_is_the_frontier(progress_db):
    progress_db.unlock_next_level()
    assert choose_level(progress_db, get_catalog(), ["whirljig"]).id == 2

@pytest.mark.parametrize("arg", ["abc", "-3", "2.5", "25"])
def test_bad_level_argument_is_reported(progress_db, capsys, arg):
    assert choose_level(progress_db, get_catalog(), ["whirljig", arg]) is None
    assert "choose 1-24" in capsys.readouterr().out

def test_locked_level_argument_is_reported(progress_db, capsys):
    assert choose_level(progress_db, get_catalog(), ["whirljig", "3"]) is None
    assert "is locked" in capsys.readouterr().out

@pytest.fixture
def local_setup(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("database._db", None)
    db_file = str(tmp_path / "progress.db")
    save_settings({"db_mode": "local", "db_file": db_file})
    return db_file

def test_main_without_argument_after_replays(local_setup, monkeypatch):
    db = ProgressDatabase(local_setup)
    replay_first_level(db, 30)
    db.close()

    played = []
    monkeypatch.setattr(main, "run_console", lambda session, driver: played.append(session.level.id))
    main.main(["whirljig"])
    assert played == [24]

def test_main_rejects_non_numeric_argument(local_setup, monkeypatch):
    monkeypatch.setattr(main, "run_console", lambda session, driver: None)
    with pytest.raises(SystemExit) as exc_info:
        main.main(["whirljig", "first"])
    assert exc_info.value.code == 1
