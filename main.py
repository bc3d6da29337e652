import uvicorn

from walletfund.config import settings
from walletfund.utilities.logconfig import setup_logging

if __name__ == "__main__":
    setup_logging()
    uvicorn.run(
        "walletfund.app:app",
        host="0.0.0.0",
        port=3090,
        reload=settings.DEBUG,
        log_config=None,
    )
