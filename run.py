from listing_scraper.main import create_app
from listing_scraper.utils.config import get_config
from listing_scraper.utils.logging_config import get_logger

app = create_app()

if __name__ == '__main__':
    logger = get_logger()
    logger.info("Listing scraper with background job queue startup")

    config = get_config()
    app.run(host=config.app.host, port=config.app.port, debug=config.app.debug, use_reloader=False)
