from fastapi import APIRouter, HTTPException, Request

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health_app():
    return {"ok": True}


@router.get("/db")
def health_db(request: Request):
    # 스키마 관리는 배포 단계의 일. 런타임은 연결만 확인한다.
    if not request.app.state.db.ping():
        raise HTTPException(status_code=503, detail="Database connection failed")
    return {"ok": True}
