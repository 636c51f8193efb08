from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from lessonplanner.api import lesson_plan
from lessonplanner.core.config import CORS_ORIGINS

app = FastAPI(title="Daily Lesson Planner")

# CORS settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(lesson_plan.router, prefix="/api", tags=["lesson_plan"])


@app.get("/")
def read_root():
    return {"message": "Daily Lesson Planner API is running"}
