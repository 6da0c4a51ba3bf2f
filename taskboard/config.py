import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./taskboard.db")

# Storage keys kept compatible with the browser build's local storage.
BOARDS_STORAGE_KEY = os.getenv("TASKBOARD_BOARDS_KEY", "taskManager_boards")
CURRENT_BOARD_KEY = os.getenv("TASKBOARD_CURRENT_BOARD_KEY", "taskManager_currentBoard")

DEFAULT_BOARD_TITLE = os.getenv("TASKBOARD_DEFAULT_BOARD_TITLE", "First Board")
DEFAULT_BOARD_BACKGROUND = os.getenv("TASKBOARD_DEFAULT_BOARD_BACKGROUND", "bg-blue-100")
NEW_BOARD_BACKGROUND = "bg-gray-100"

VERSION = "1.0.0"
