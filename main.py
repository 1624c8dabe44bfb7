import sys
import time
import json
import os

from database import DEFAULT_DB_FILE, get_database
from levels import get_catalog
from puzzle import Phase, PuzzleSession


# Settings management
SETTINGS_FILE = "settings.json"
DEFAULT_SERVER = "localhost:5000"  # Default server if no settings file exists
DEFAULT_SETTINGS = {
    "db_mode": "local",
    "db_file": DEFAULT_DB_FILE,
    "server_url": DEFAULT_SERVER,
}

USAGE = "Commands: start, pause, resume, reset, select N, rotate N, hint, board, quit"


def load_settings(path=SETTINGS_FILE):
    """Load settings from a JSON file, filling missing keys with defaults."""
    settings = dict(DEFAULT_SETTINGS)
    if os.path.exists(path):
        try:
            with open(path, 'r') as f:
                settings.update(json.load(f))
        except json.JSONDecodeError:
            print(f"Ignoring unreadable settings file {path}")
    return settings

def save_settings(settings, path=SETTINGS_FILE):
    """Save settings to a JSON file."""
    with open(path, 'w') as f:
        json.dump(settings, f)


def get_game_database(mode="local", server_url=None, db_file=DEFAULT_DB_FILE):
    """
    Factory function to get the appropriate progress store.

    Args:
        mode: 'local' for local-only storage, 'remote' to also report to a server
        server_url: URL of the remote server, required for 'remote' mode
        db_file: Path of the local SQLite file

    Returns:
        Progress store instance
    """
    if mode == "remote" and server_url:
        try:
            from database_sync import get_sync_database
            db = get_sync_database(server_url=server_url, db_file=db_file)
            print(f"Using server at {server_url} - completed levels will be reported")
            return db
        except OSError as e:
            print(f"Error initializing sync database: {e}")
            print("Falling back to local database")

    print("Using local database only - your progress will be stored locally")
    return get_database(db_file)


class SessionDriver:
    """
    Turns wall-clock time into session ticks.
    Call update() regularly from the host loop; it only counts time while the
    session is playing.
    """

    def __init__(self, session, time_source=time.monotonic):
        self.session = session
        self.time_source = time_source
        self.last_tick = None

    def update(self):
        """
        Issue one tick per whole second elapsed since the last one.

        Returns:
            Number of ticks issued
        """
        now = self.time_source()
        if self.session.phase is not Phase.PLAYING:
            self.last_tick = None
            return 0
        if self.last_tick is None:
            self.last_tick = now
            return 0

        elapsed = int(now - self.last_tick)
        ticks = 0
        while ticks < elapsed and self.session.phase is Phase.PLAYING:
            self.session.tick()
            ticks += 1
        self.last_tick += elapsed
        return ticks


def handle_command(session, line):
    """
    Apply one console command to the session.

    Returns:
        False when the player asked to quit, True otherwise
    """
    parts = line.strip().lower().split()
    if not parts:
        return True

    command, args = parts[0], parts[1:]
    if command == "quit":
        return False
    if command in ("start", "pause", "resume", "reset"):
        getattr(session, command)()
    elif command == "hint":
        if session.use_hint():
            print(f"Hint: look at shapes {', '.join(map(str, session.hint_targets))}")
        else:
            print("No hint available")
    elif command in ("select", "rotate") and len(args) == 1 and args[0].isdigit():
        action = session.select_shape if command == "select" else session.rotate_shape
        if not action(int(args[0])):
            print("Nothing happened")
    elif command == "board":
        for shape in session.board:
            if not shape.matched:
                print(f"  #{shape.shape_id} {shape.kind.value} at "
                      f"({shape.position.row}, {shape.position.col}) "
                      f"rotated {shape.rotation_degrees:.1f}")
    else:
        print(USAGE)
    return True


def run_console(session, driver, read_line=input):
    """
    Play a session from the terminal until the player quits.
    A finished attempt can be restarted with reset.
    """
    print(USAGE)
    announced = False
    while True:
        print(session)
        try:
            line = read_line("> ")
        except EOFError:
            break

        # The clock catches up before the command is applied
        driver.update()
        if session.phase.is_terminal and not announced:
            announce_result(session)
            announced = True
            continue
        if not handle_command(session, line):
            break
        driver.update()
        if session.phase.is_terminal and not announced:
            announce_result(session)
            announced = True
        elif not session.phase.is_terminal:
            announced = False


def announce_result(session):
    if session.phase is Phase.COMPLETED:
        print(f"Level complete! Final score: {session.state.score}")
    else:
        print("Time's up!")
    print("Type reset to try again or quit to leave")


def choose_level(db, catalog, argv):
    """
    Pick the level to play: the one named on the command line, or the
    highest unlocked level the catalog has.

    Returns:
        LevelDefinition, or None after printing why no level can be played
    """
    if len(argv) > 1:
        if not argv[1].isdigit():
            print(f"No level {argv[1]}; choose 1-{len(catalog)}")
            return None
        level_id = int(argv[1])
    else:
        # Replays keep pushing the frontier past the last level
        level_id = min(db.get_current_level(), len(catalog))

    level = catalog.get_level(level_id)
    if level is None:
        print(f"No level {level_id}; choose 1-{len(catalog)}")
        return None
    if not db.is_level_unlocked(level.id):
        print(f"Level {level.id} is locked; complete level {db.get_current_level()} first")
        return None
    return level


def main(argv=None):
    """Main function to run the game."""
    argv = sys.argv if argv is None else argv
    settings = load_settings()
    db = get_game_database(mode=settings["db_mode"], server_url=settings["server_url"],
                           db_file=settings["db_file"])
    catalog = get_catalog()

    level = choose_level(db, catalog, argv)
    if level is None:
        db.close()
        sys.exit(1)

    print(f"Level {level.id}: {level.name} - {level.description}")
    print(f"Reach {level.target_score} points in {level.time_limit_seconds} seconds")
    session = PuzzleSession(level, progress_store=db, catalog=catalog)
    try:
        run_console(session, SessionDriver(session))
    finally:
        if hasattr(db, "wait_for_sync"):
            db.wait_for_sync(timeout=30)
        db.close()


if __name__ == "__main__":
    main()
