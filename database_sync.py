"""
Progress database with server synchronization.
Use this as an alternative to database.py when completed levels should also
be reported to a remote server. The local database stays authoritative.
"""
import os
import time
import uuid
import threading
import random
import requests
from typing import List, Optional, Tuple

from database import ProgressDatabase, DEFAULT_DB_FILE


SERVER_URL = "http://localhost:5000"
CLIENT_ID_FILE = ".client_id"
MAX_RETRIES = 5
BASE_DELAY = 1  # seconds


def get_client_id(path=CLIENT_ID_FILE) -> str:
    """Read the client id from disk, generating and saving one on first use."""
    if os.path.exists(path):
        with open(path, "r") as f:
            client_id = f.read().strip()
        if client_id:
            return client_id

    client_id = str(uuid.uuid4())
    with open(path, "w") as f:
        f.write(client_id)
    return client_id


def normalize_server_url(server_url: str) -> str:
    """Ensure the URL has a scheme and a single trailing slash."""
    if server_url and not server_url.startswith(('http://', 'https://')):
        server_url = 'http://' + server_url
    if server_url and not server_url.endswith('/'):
        server_url += '/'
    return server_url


class SyncProgressDatabase(ProgressDatabase):
    """
    Progress database that also pushes every completed level to the server.

    Pushes run on a background thread so complete_level returns as soon as the
    local write is done. Results the server never acknowledged are kept in
    `unsynced` and can be retried with retry_unsynced().
    """

    def __init__(self, db_file=DEFAULT_DB_FILE, server_url=SERVER_URL, client_id=None,
                 background=True, sleep=time.sleep):
        """
        Initialize the database connection with sync capabilities.

        Args:
            db_file: Path to the local SQLite database file
            server_url: Base URL of the progress server
            client_id: Identifier sent with every result (read from disk if None)
            background: Push on a daemon thread instead of the caller's thread
            sleep: Function used to wait between retries
        """
        super().__init__(db_file)
        self.server_url = normalize_server_url(server_url)
        self.client_id = client_id or get_client_id()
        self.background = background
        self.sleep = sleep
        self.online = False  # Assume offline until we verify connection
        self.unsynced: List[Tuple[int, int, int]] = []
        self._lock = threading.Lock()
        self._threads: List[threading.Thread] = []
        print(f"Initializing sync database with server URL: {self.server_url}")

        self.check_server_connection()

    def check_server_connection(self) -> bool:
        """Check if the server is available."""
        try:
            response = requests.get(self.server_url, timeout=5)
            self.online = response.status_code == 200
            print(f"Server connection: {'Online' if self.online else 'Offline'} "
                  f"(Status code: {response.status_code})")
            return self.online
        except requests.exceptions.ConnectionError as e:
            self.online = False
            print(f"Server connection failed (ConnectionError): {e}")
            return False
        except requests.exceptions.Timeout as e:
            self.online = False
            print(f"Server connection timeout: {e}")
            return False
        except requests.exceptions.RequestException as e:
            self.online = False
            print(f"Server connection error: {e}")
            return False

    def complete_level(self, level_id: int, score: int) -> int:
        """
        Save the result locally, then report it to the server.

        Returns:
            ID of the local record, or -1 if the local write failed
        """
        local_id = super().complete_level(level_id, score)
        if local_id == -1:
            return local_id

        if self.background:
            thread = threading.Thread(
                target=self.push_result, args=(level_id, score, local_id), daemon=True)
            self._threads.append(thread)
            thread.start()
        else:
            self.push_result(level_id, score, local_id)
        return local_id

    def push_result(self, level_id: int, score: int, local_id: int) -> bool:
        """
        Send one completed level to the server with retry logic.

        Returns:
            True if the server stored (or already had) the result
        """
        payload = {
            "client_id": self.client_id,
            "level_id": level_id,
            "score": score,
            "local_id": local_id,  # lets the server drop duplicates
        }
        url = f"{self.server_url.rstrip('/')}/api/progress/complete"

        for attempt in range(1, MAX_RETRIES + 1):
            try:
                if attempt > 1:
                    print(f"Retry attempt {attempt}/{MAX_RETRIES} for level {level_id} result")

                response = requests.post(url, json=payload, timeout=10 + attempt * 5)

                if response.status_code == 200:
                    print(f"Saved level {level_id} result to server")
                    return True
                elif response.status_code == 409:
                    print(f"Level {level_id} result already exists on server")
                    return True

                print(f"Attempt {attempt}: server rejected level result: {response.status_code}")
                if response.status_code < 500 and response.status_code != 429:
                    print(f"Non-retriable error code {response.status_code}, abandoning retry")
                    break
            except requests.exceptions.RequestException as e:
                print(f"Attempt {attempt}: Network error saving level result: {e}")

            if attempt < MAX_RETRIES:
                # Exponential backoff with jitter
                delay = BASE_DELAY * (2 ** (attempt - 1)) * (0.5 + random.random())
                print(f"Waiting {delay:.2f}s before retry...")
                self.sleep(delay)

        print(f"Failed to save level {level_id} result to server")
        with self._lock:
            self.unsynced.append((level_id, score, local_id))
        return False

    def retry_unsynced(self) -> int:
        """
        Push every result the server has not acknowledged yet.

        Returns:
            Number of results that are now synced
        """
        with self._lock:
            pending, self.unsynced = self.unsynced, []

        synced = 0
        for level_id, score, local_id in pending:
            if self.push_result(level_id, score, local_id):
                synced += 1
        return synced

    def wait_for_sync(self, timeout: Optional[float] = None) -> None:
        """Block until the background pushes started so far have finished."""
        for thread in self._threads:
            thread.join(timeout)
        self._threads = [thread for thread in self._threads if thread.is_alive()]


def get_sync_database(server_url=SERVER_URL, db_file=DEFAULT_DB_FILE) -> SyncProgressDatabase:
    """Create a server-synchronized database; remote data goes to its own file."""
    db_dir, db_name = os.path.split(db_file)
    return SyncProgressDatabase(os.path.join(db_dir, "remote_" + db_name), server_url=server_url)
