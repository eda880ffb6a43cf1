import os

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "account_service.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8001")),
        reload=False,
    )
