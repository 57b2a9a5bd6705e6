import logging

from sahayak.config import Config


def main():
    logging.basicConfig(
        level=Config.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    for problem in Config.validate():
        logging.getLogger(__name__).warning(f"Missing configuration: {problem}")

    import uvicorn
    uvicorn.run("sahayak.main:app", host=Config.HOST, port=Config.PORT, log_level=Config.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
