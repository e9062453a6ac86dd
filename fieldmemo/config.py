import os

# ================================
# SUPABASE
# ================================
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
# The pipeline filters every row by user_id itself, so the service role key is preferred.
SUPABASE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_ANON_KEY", "")

VOICE_MEMO_BUCKET = os.getenv("VOICE_MEMO_BUCKET", "voice-memos")
PHOTO_BUCKET = os.getenv("PHOTO_BUCKET", "inspection-photos")

# ================================
# OPENAI
# ================================
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
TRANSCRIBE_MODEL = os.getenv("TRANSCRIBE_MODEL", "whisper-1")
EXTRACT_MODEL = os.getenv("EXTRACT_MODEL", "gpt-4o")
REPORT_MODEL = os.getenv("REPORT_MODEL", "gpt-4o")

# ================================
# SERVER
# ================================
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "50"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", "10000"))
