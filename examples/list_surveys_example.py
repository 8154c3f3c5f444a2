#!/usr/bin/env python
"""
RemoteControl Client Example

Connects with credentials from the environment (LIMESURVEY_ENDPOINT,
LIMESURVEY_ACCOUNT, LIMESURVEY_PASSWORD), lists the surveys and prints the
response summary of each one.
"""

import json
import logging

from lime_remote.client import LimeSurveyClient
from lime_remote.config import ClientConfig
from lime_remote.errors import LimeSurveyError
from lime_remote.telemetry.metrics import setup_metrics

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    config = ClientConfig.from_env()
    logger.info(f"Connecting with configuration: {json.dumps(config.to_dict(), indent=2, default=str)}")

    if config.enable_tracing:
        setup_metrics(config.service_name)

    try:
        with LimeSurveyClient.from_config(config) as client:
            surveys = client.list_surveys()
            logger.info(f"Found {len(surveys)} surveys")
            for survey in surveys:
                summary = client.get_summary(survey["sid"])
                if summary is None:
                    logger.warning(f"Survey {survey['sid']} disappeared")
                    continue
                logger.info(f"{survey['sid']} {survey.get('surveyls_title')}: {summary}")
    except LimeSurveyError as e:
        logger.error(f"RemoteControl call failed: {e}")
        raise


if __name__ == "__main__":
    main()
