# main.py
# Entry point: uvicorn main:app --port 8000
from charting_agent.main import app, create_app  # noqa: F401

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("charting_agent.main:app", host="0.0.0.0", port=8000)
