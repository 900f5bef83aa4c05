# webstream/settings.py
import os
import pathlib

from dotenv import load_dotenv

load_dotenv()

ROOT = pathlib.Path(__file__).resolve().parent.parent  # repo root

# ---------------------- Portal ----------------------
PORTAL_BASE_URL = os.getenv("PORTAL_BASE_URL", "https://webstream.sastra.edu/sastrapwi/").rstrip("/") + "/"
LOGIN_URL = PORTAL_BASE_URL

# login form
REGNO_INPUT = "#txtRegNumber"
PASSWORD_INPUT = "#txtPwd"
CAPTCHA_INPUT = "#answer"
CAPTCHA_IMAGE = "#imgCaptcha"
LOGIN_BUTTON = "input[type='button'][value='Login'], #btnLogin"
LOGIN_ERROR = ".ui-state-error"

# ---------------------- Browser ----------------------
HEADLESS = os.getenv("HEADLESS", "1") == "1"
BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage", "--disable-gpu"]
CAPTCHA_TIMEOUT_MS = int(os.getenv("CAPTCHA_TIMEOUT_MS", "15000"))
NAVIGATION_TIMEOUT_MS = int(os.getenv("NAVIGATION_TIMEOUT_MS", "30000"))
# unanswered captchas older than this are closed
CHALLENGE_TTL_SEC = int(os.getenv("CHALLENGE_TTL_SEC", "600"))

# ---------------------- Storage ----------------------
STORE_PATH = pathlib.Path(os.getenv("STORE_PATH", str(ROOT / "config" / "webstream.db")))
# urlsafe base64 of 32 random bytes; unset disables stored secrets (and relogin)
SECRET_KEY = os.getenv("SECRET_KEY")

# ---------------------- Collaborators ----------------------
IMGBB_API_KEY = os.getenv("IMGBB_API_KEY")
IMGBB_UPLOAD_URL = "https://api.imgbb.com/1/upload"

# ---------------------- Server ----------------------
ALLOWED_ORIGIN = os.getenv("ALLOWED_ORIGIN", "*")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
