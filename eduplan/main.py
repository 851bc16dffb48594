from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from eduplan.api import lesson_plan, sow, timetable
from eduplan.core.config import CORS_ORIGINS

app = FastAPI(title="EduPlan Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(sow.router, prefix="/sow", tags=["scheme_of_work"])
app.include_router(timetable.router, prefix="/timetable", tags=["timetable"])
app.include_router(lesson_plan.router, prefix="/api", tags=["lesson_plan"])


@app.get("/")
def read_root():
    return {"message": "EduPlan API is running"}
