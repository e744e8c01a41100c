import os

from fastapi.templating import Jinja2Templates

from .services import SQLiteProgressRecorder, SQLiteQuestionPool
from .sessions import SessionRegistry

templates = Jinja2Templates(
    directory=os.path.join(os.path.dirname(__file__), "templates")
)
question_pool = SQLiteQuestionPool()
progress_recorder = SQLiteProgressRecorder()
session_registry = SessionRegistry()
