import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    app_name: str = "School Result Ranking"
    debug: bool = os.getenv("DEBUG", "False").lower() == "true"
    host: str = os.getenv("HOST", "localhost")
    port: int = int(os.getenv("PORT", 8001))
    api_prefix: str = os.getenv("API_PREFIX", "/api/v1")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    mongo_url: str = os.getenv("MONGO_URL", "mongodb://localhost:27017")
    mongo_db: str = os.getenv("MONGO_DB", "school_results")
    result_collection: str = os.getenv("RESULT_COLLECTION", "student_results")
    subject_collection: str = os.getenv("SUBJECT_COLLECTION", "subjects")

    # Ranking policy
    result_identity: str = os.getenv("RESULT_IDENTITY", "surrogate")  # surrogate | natural
    full_marks_scope: str = os.getenv("FULL_MARKS_SCOPE", "subject")  # subject | result
    pass_marks: float = float(os.getenv("PASS_MARKS", 33))
    exclude_failed_from_rank: bool = os.getenv("EXCLUDE_FAILED_FROM_RANK", "False").lower() == "true"

    class Config:
        env_file = ".env"
        extra = "allow"

settings = Settings()
