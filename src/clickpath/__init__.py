import os

from dotenv import load_dotenv
from lmnr import Laminar

from clickpath.app_data import get_env_path

# Load .env from the data dir (deterministic) and also allow CWD-based fallback.
load_dotenv(get_env_path())
load_dotenv()

if os.getenv("LMNR_PROJECT_API_KEY") is not None:
    Laminar.initialize()
