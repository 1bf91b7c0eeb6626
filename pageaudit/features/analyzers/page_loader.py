import time
from typing import Optional

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service

from pageaudit.features.analyzers.base import Snapshot
from pageaudit.platform.config import settings
from pageaudit.platform.exceptions import PageLoadError
from pageaudit.platform.logger import get_logger

logger = get_logger(__name__)

NAVIGATION_STATUS_JS = (
    "const nav = performance.getEntriesByType('navigation')[0];"
    "return nav && nav.responseStatus ? nav.responseStatus : null;"
)


def classify_webdriver_error(message: str) -> str:
    """Map a Chrome network error message to a PageLoadError category."""
    text = (message or "").upper()
    if "ERR_NAME_NOT_RESOLVED" in text or "ERR_NAME_RESOLUTION_FAILED" in text:
        return "dns"
    if "ERR_CERT" in text or "ERR_SSL" in text or "SSL" in text:
        return "tls"
    if "ERR_TIMED_OUT" in text or "ERR_CONNECTION_TIMED_OUT" in text or "TIMEOUT" in text:
        return "timeout"
    return "unreachable"


class SeleniumPageLoader:
    """Loads a page once in headless Chrome and returns an immutable snapshot."""

    @staticmethod
    def build_driver() -> webdriver.Chrome:
        chrome_options = Options()
        chrome_options.add_argument('--headless')
        chrome_options.add_argument('--no-sandbox')
        chrome_options.add_argument('--disable-dev-shm-usage')

        if settings.CHROMEDRIVER_PATH:
            driver_service = Service(executable_path=settings.CHROMEDRIVER_PATH)
            return webdriver.Chrome(service=driver_service, options=chrome_options)
        return webdriver.Chrome(options=chrome_options)

    def load_page(self, url: str, timeout: Optional[int] = None) -> Snapshot:
        timeout = timeout or settings.PAGE_LOAD_TIMEOUT_SECONDS
        driver = None
        try:
            driver = self.build_driver()
            driver.set_page_load_timeout(timeout)

            start_time = time.time()
            driver.get(url)
            load_time = time.time() - start_time

            status_code = driver.execute_script(NAVIGATION_STATUS_JS) or 200
            snapshot = Snapshot(
                url=url,
                final_url=driver.current_url or url,
                status_code=int(status_code),
                html=driver.page_source or "",
                load_time=round(load_time, 3),
            )
        except TimeoutException as e:
            logger.warning(f"Timeout loading {url}: {e.msg}")
            raise PageLoadError(f"Timed out loading {url} after {timeout}s", "timeout") from e
        except WebDriverException as e:
            category = classify_webdriver_error(e.msg or str(e))
            logger.warning(f"Failed to load {url} ({category}): {e.msg}")
            raise PageLoadError(f"Could not load {url}: {category}", category) from e
        finally:
            if driver is not None:
                driver.quit()

        if snapshot.status_code >= 400:
            raise PageLoadError(f"{url} responded with HTTP {snapshot.status_code}", "http_error")

        logger.info(f"Loaded {url} in {snapshot.load_time}s ({len(snapshot.html)} bytes)")
        return snapshot
