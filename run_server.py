import uvicorn

if __name__ == "__main__":
    # Set HEADGUARD_STORAGE_DIR to persist protocols to disk

    print("Starting HeadGuard RTP API Server...")
    print("Docs available at: http://localhost:8000/docs")

    uvicorn.run(
        "headguard.api.server:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
