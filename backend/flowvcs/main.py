"""FastAPI 애플리케이션 진입점. 미들웨어와 API 라우터를 등록합니다."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from flowvcs.config import settings
from flowvcs.database import Base, engine
import flowvcs.models  # noqa: F401 - 모델 import로 metadata 등록
from flowvcs.routers import auth, projects, files, vcs

app = FastAPI(
    title="FlowVCS 프로세스 문서 버전 관리",
    description="BPMN/DMN 프로세스 문서의 draft/main 브랜치, 커밋, 병합, 복원을 제공하는 서비스",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# vcs는 /api/projects/uncommitted-status 때문에 projects보다 먼저 등록한다.
app.include_router(auth.router)
app.include_router(vcs.router)
app.include_router(projects.router)
app.include_router(files.router)


@app.on_event("startup")
def ensure_schema():
    # 신규 기능 배포 시 누락된 테이블을 자동 생성합니다.
    Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok", "service": "FlowVCS"}
