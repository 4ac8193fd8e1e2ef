# resume_ab/config.py
import os

from dotenv import load_dotenv

# Load .env file (DATABASE_URL, RECOMPUTE_MODE, LLM_MODEL, OLLAMA_HOST, ...)
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./ab_testing.db")

# "sync": an outcome recomputes its experiment before returning
# "background": the experiment is queued on the recompute worker
RECOMPUTE_MODE = os.getenv("RECOMPUTE_MODE", "sync").lower()

# "delete": archiving removes the variant and its trials
# "soft": archiving only flags the variant, trials are kept
ARCHIVE_MODE = os.getenv("ARCHIVE_MODE", "delete").lower()

OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")
LLM_MODEL = os.getenv("LLM_MODEL", "llama3")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "120"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Optional seed for variant assignment (unset = unseeded)
_seed = os.getenv("ASSIGNMENT_SEED")
ASSIGNMENT_SEED = int(_seed) if _seed else None
