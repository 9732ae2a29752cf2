import asyncio
import os
import sys
import logging
from dotenv import load_dotenv

from forkscout.infrastructure.github_client import GitHubGraphQLClient
from forkscout.application.discovery_service import DEFAULT_DIFF_BATCH_SIZE, ForkDiscoveryService
from forkscout.infrastructure.queries import DEFAULT_FORK_PAGE_SIZE
from forkscout.domain.exceptions import ForkScoutException

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

TOP_FORKS_TO_LOG = 10


def _int_setting(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.error(f"{name} must be an integer, got {raw!r}.")
        sys.exit(1)
    if value < 1:
        logger.error(f"{name} must be positive, got {value}.")
        sys.exit(1)
    return value


async def main():
    # Load environment variables from .env file
    load_dotenv()

    github_token = os.getenv("GITHUB_TOKEN")
    target = sys.argv[1] if len(sys.argv) > 1 else os.getenv("FORKSCOUT_REPO")

    if not github_token:
        logger.error("GITHUB_TOKEN is not set in the environment.")
        sys.exit(1)

    if not target or target.count("/") != 1:
        logger.error("Target repository must be given as owner/name (argument or FORKSCOUT_REPO).")
        sys.exit(1)

    owner, name = target.split("/")
    max_forks = _int_setting("FORKSCOUT_MAX_FORKS", 100)
    page_size = _int_setting("FORKSCOUT_PAGE_SIZE", DEFAULT_FORK_PAGE_SIZE)
    batch_size = _int_setting("FORKSCOUT_BATCH_SIZE", DEFAULT_DIFF_BATCH_SIZE)

    try:
        async with GitHubGraphQLClient(token=github_token) as github_client:
            await github_client.validate_token()
            service = ForkDiscoveryService(executor=github_client, owner=owner, name=name)
            ranked = await service.discover(max_forks=max_forks, page_size=page_size, batch_size=batch_size)
    except KeyboardInterrupt:
        logger.info("Discovery interrupted by user. Exiting gracefully.")
        return
    except ForkScoutException as e:
        logger.error(f"Fork discovery failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"An unexpected error occurred: {e}")
        sys.exit(1)

    for position, fork in enumerate(ranked[:TOP_FORKS_TO_LOG], start=1):
        diff = fork.diff
        logger.info(
            f"#{position} {fork.name_with_owner} score={fork.fork_score:.2f} "
            f"ahead={diff.ahead_by if diff else 0} behind={diff.behind_by if diff else 0} "
            f"new_branches={len(fork.extended_info.new_branches) if fork.extended_info else 0} {fork.url}"
        )


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
