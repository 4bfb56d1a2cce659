import logging

from .bot import PanelBot
from .config import Config


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    config = Config.from_env()
    bot = PanelBot(config)
    bot.run(config.discord_token, log_handler=None)


if __name__ == "__main__":
    main()
