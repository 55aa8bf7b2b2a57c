# main.py

from dotenv import load_dotenv
load_dotenv(override=True)

from repair_tracker import create_app

# Uvicorn dipanggil dengan factory=True, jadi yang diexport factory-nya
app = create_app
