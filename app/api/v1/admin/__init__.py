"""Admin API (office role)."""
from fastapi import APIRouter
from app.api.v1.admin import attendance as admin_attendance
from app.api.v1.admin import sessions as admin_sessions
from app.api.v1.admin import task_windows as admin_task_windows

admin_router = APIRouter(prefix="/admin", tags=["admin"])
admin_router.include_router(admin_attendance.router, prefix="/attendance", tags=["admin-attendance"])
admin_router.include_router(admin_sessions.router, prefix="/sessions", tags=["admin-sessions"])
admin_router.include_router(admin_task_windows.router, prefix="/task-windows", tags=["admin-task-windows"])
