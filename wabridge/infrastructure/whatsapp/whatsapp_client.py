"""
WhatsApp Client - Selenium-Based WhatsApp Web Automation
=========================================================

Blocking driver for a single WhatsApp Web tab. Every method here talks to
the browser synchronously; SeleniumSession runs them on worker threads.
"""

import logging
import time
import random
from pathlib import Path
from typing import Optional, List

from selenium import webdriver
from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.chrome.service import Service as ChromeService
from selenium.webdriver.support.ui import WebDriverWait
from selenium.common.exceptions import (
    NoSuchElementException,
    TimeoutException,
    StaleElementReferenceException
)
from webdriver_manager.chrome import ChromeDriverManager

from ..config import WhatsAppSettings
from .models import PageStatus

logger = logging.getLogger(__name__)


class WhatsAppClientError(Exception):
    """Base exception for WhatsApp client errors."""
    pass


class WhatsAppBlockedError(WhatsAppClientError):
    """Raised when WhatsApp shows blocking/warning indicators."""
    pass


class SessionNotReadyError(WhatsAppClientError):
    """Raised when a message is sent before the session is ready."""
    pass


class ResourceBusyError(WhatsAppClientError):
    """Raised when session storage is still locked and cannot be removed."""
    pass


class WhatsAppClient:
    """
    Selenium-based WhatsApp Web client.
    """

    # CSS Selectors - WhatsApp Web 2024/2025
    # Attribute-based where possible, with fallbacks for older layouts
    SELECTORS = {
        "qr_code": 'div[data-ref]',
        "chat_list": '#pane-side',
        "chat_list_alt": 'div[aria-label="Chat list"]',
        "loading": 'progress',

        "message_input": 'footer div[contenteditable="true"][data-tab="10"]',
        "message_input_alt": 'footer div[contenteditable="true"]',
    }

    ATTACH_SELECTORS = [
        'div[title="Attach"]',
        'button[title="Attach"]',
        'span[data-icon="plus-rounded"]',
        'span[data-icon="plus"]',
        'span[data-icon="clip"]',
    ]

    FILE_INPUT_SELECTORS = [
        'input[type="file"][accept="*"]',
        'input[type="file"]',
    ]

    SEND_SELECTORS = [
        'span[data-icon="send"]',
        'div[role="button"][aria-label="Send"]',
        'button[aria-label="Send"]',
    ]

    MENU_SELECTORS = [
        'div[title="Menu"]',
        'button[title="Menu"]',
        'span[data-icon="menu"]',
    ]

    CAPTION_XPATH = (
        "//div[@contenteditable='true' and @role='textbox'"
        " and (contains(translate(@aria-label,'CAPTION','caption'),'caption')"
        " or contains(translate(@aria-placeholder,'CAPTION','caption'),'caption'))]"
    )
    LOGOUT_ITEM_XPATH = "//*[normalize-space(text())='Log out']"
    LOGOUT_CONFIRM_XPATH = "//div[@role='dialog']//*[normalize-space(text())='Log out']"

    INVALID_NUMBER_TEXT = "phone number shared via url is invalid"

    BLOCK_INDICATORS = [
        "temporarily banned",
        "account is temporarily",
        "verify your phone",
        "unusual activity",
    ]

    def __init__(self, settings: WhatsAppSettings):
        self._settings = settings

        self.driver = self._create_driver()
        self._navigate_to_whatsapp()

    def _create_driver(self) -> webdriver.Chrome:
        """Create and configure Chrome WebDriver."""
        options = webdriver.ChromeOptions()

        if self._settings.headless:
            options.add_argument("--headless=new")
        else:
            options.add_argument("--start-maximized")

        options.add_argument("--disable-gpu")
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-setuid-sandbox")
        options.add_argument("--disable-dev-shm-usage")

        profile_dir = self._settings.auth_dir.resolve()
        cache_dir = self._settings.cache_dir.resolve()
        options.add_argument(f"--user-data-dir={profile_dir}")
        options.add_argument(f"--disk-cache-dir={cache_dir}")
        logger.info(f"Using Chrome profile at: {profile_dir}")

        service = ChromeService(ChromeDriverManager().install())
        return webdriver.Chrome(service=service, options=options)

    def _navigate_to_whatsapp(self) -> None:
        """Navigate to WhatsApp Web."""
        self.driver.get(self._settings.web_url)
        logger.info("Opened WhatsApp Web")

    def _random_delay(self, min_s: float = 0.2, max_s: float = 0.6) -> None:
        """Add human-like random delay."""
        delay = random.uniform(min_s, max_s)
        time.sleep(delay)

    def _check_for_blocks(self) -> bool:
        """Check page for blocking/warning indicators."""
        page_text = self.driver.page_source.lower()
        for indicator in self.BLOCK_INDICATORS:
            if indicator in page_text:
                logger.error(f"Block indicator detected: {indicator}")
                return True
        return False

    def _find_first(self, selectors: List[str]):
        """Return the first element matching any of the CSS selectors."""
        for selector in selectors:
            try:
                return self.driver.find_element(By.CSS_SELECTOR, selector)
            except NoSuchElementException:
                continue
        return None

    def _wait_for_first(self, selectors: List[str], timeout: float):
        """Wait until any of the CSS selectors matches."""
        try:
            return WebDriverWait(self.driver, timeout).until(
                lambda d: self._find_first(selectors)
            )
        except TimeoutException:
            return None

    # ── Page status ────────────────────────────────────────────────

    def read_status(self) -> PageStatus:
        """
        Read the current login state from the page.

        Raises WebDriverException if the browser is gone.
        """
        qr_payload = None
        try:
            qr = self.driver.find_element(By.CSS_SELECTOR, self.SELECTORS["qr_code"])
            qr_payload = qr.get_attribute("data-ref") or None
        except (NoSuchElementException, StaleElementReferenceException):
            pass

        logged_in = self._find_first(
            [self.SELECTORS["chat_list"], self.SELECTORS["chat_list_alt"]]
        ) is not None
        loading = self._find_first([self.SELECTORS["loading"]]) is not None

        return PageStatus(qr_payload=qr_payload, loading=loading, logged_in=logged_in)

    # ── Chats ──────────────────────────────────────────────────────

    def _find_message_input(self):
        """Find the message input box with multiple fallback selectors."""
        return self._find_first([
            self.SELECTORS["message_input"],
            self.SELECTORS["message_input_alt"],
            'div[title="Type a message"]',
        ])

    def open_chat(self, phone: str):
        """
        Open chat with a phone number and return its message input.

        Raises WhatsAppClientError if the number is invalid or the chat
        does not open in time.
        """
        if self._check_for_blocks():
            raise WhatsAppBlockedError("WhatsApp blocking detected")

        logger.debug(f"Opening chat with: {phone}")
        self.driver.get(f"{self._settings.web_url}send?phone={phone}")

        def _chat_or_error(driver):
            if self.INVALID_NUMBER_TEXT in driver.page_source.lower():
                return "invalid"
            return self._find_message_input()

        try:
            result = WebDriverWait(
                self.driver, self._settings.chat_open_timeout
            ).until(_chat_or_error)
        except TimeoutException:
            raise WhatsAppClientError(f"Timed out opening chat for {phone}")

        if result == "invalid":
            raise WhatsAppClientError(f"Phone number {phone} is not on WhatsApp")

        logger.info(f"Chat opened successfully: {phone}")
        return result

    def _type_text(self, element, text: str) -> None:
        """Type text in chunks, keeping line breaks inside one message."""
        chunk_size = 50
        for line_no, line in enumerate(text.split("\n")):
            if line_no:
                element.send_keys(Keys.SHIFT, Keys.ENTER)
            for i in range(0, len(line), chunk_size):
                element.send_keys(line[i:i + chunk_size])
                self._random_delay(0.05, 0.15)

    def send_text(self, phone: str, text: str) -> None:
        """Send a text message to a phone number."""
        input_box = self.open_chat(phone)

        input_box.click()
        self._random_delay()
        self._type_text(input_box, text)
        self._random_delay()
        input_box.send_keys(Keys.ENTER)

        logger.info(f"Sent message to {phone}: {text[:50]}...")

    def send_file(self, phone: str, path: Path, caption: Optional[str] = None) -> None:
        """Send a file from disk to a phone number, with optional caption."""
        self.open_chat(phone)
        self._random_delay()

        attach = self._wait_for_first(self.ATTACH_SELECTORS, timeout=10)
        if attach is None:
            raise WhatsAppClientError("Could not find the attach button")
        attach.click()
        self._random_delay()

        file_input = self._wait_for_first(self.FILE_INPUT_SELECTORS, timeout=10)
        if file_input is None:
            raise WhatsAppClientError("Could not find the file input")
        file_input.send_keys(str(Path(path).resolve()))

        if caption:
            try:
                caption_box = WebDriverWait(self.driver, 10).until(
                    lambda d: d.find_element(By.XPATH, self.CAPTION_XPATH)
                )
                caption_box.click()
                self._type_text(caption_box, caption)
            except TimeoutException:
                logger.warning("Caption box not found, sending file without caption")

        send = self._wait_for_first(self.SEND_SELECTORS, timeout=15)
        if send is None:
            raise WhatsAppClientError("Could not find the send button")
        send.click()

        # Give the upload a moment before the tab is navigated away
        time.sleep(2)
        logger.info(f"Sent file {Path(path).name} to {phone}")

    # ── Session ────────────────────────────────────────────────────

    def logout(self) -> None:
        """Unlink this device through the WhatsApp Web menu."""
        menu = self._wait_for_first(self.MENU_SELECTORS, timeout=10)
        if menu is None:
            raise WhatsAppClientError("Could not find the menu button")
        menu.click()
        self._random_delay()

        try:
            item = WebDriverWait(self.driver, 10).until(
                lambda d: d.find_element(By.XPATH, self.LOGOUT_ITEM_XPATH)
            )
            item.click()
            confirm = WebDriverWait(self.driver, 10).until(
                lambda d: d.find_element(By.XPATH, self.LOGOUT_CONFIRM_XPATH)
            )
            confirm.click()
        except TimeoutException:
            raise WhatsAppClientError("Could not find the log out option")

        # Wait for the pairing screen to confirm the device was unlinked
        try:
            WebDriverWait(self.driver, 20).until(
                lambda d: d.find_elements(By.CSS_SELECTOR, self.SELECTORS["qr_code"])
            )
        except TimeoutException:
            logger.warning("Pairing screen did not appear after log out")

        logger.info("Logged out of WhatsApp Web")

    def close(self) -> None:
        """Close browser and cleanup."""
        try:
            self.driver.quit()
            logger.info("Browser closed")
        except Exception as e:
            logger.debug(f"Error closing browser: {e}")
