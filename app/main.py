# app/main.py  (엔트리포인트)
from dotenv import load_dotenv

# 루트 .env 로딩
load_dotenv()

from app.accounts.main import create_app  # noqa: E402

app = create_app()
