import uvicorn
from gateway.main import app
from gateway.logging_utility import logger


if __name__=='__main__':
    logger.info("Starting VPN Client Gateway application")
    uvicorn.run(app, host='0.0.0.0', port=8000)
