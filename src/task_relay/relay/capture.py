# Task Relay: Page Capture Bridge
#
# The page-context script hooks XMLHttpRequest on product pages and posts
# every finished ``wareBusiness`` response across contexts as:
#
#   {"url": <request url>, "data": <response text>, "extraInfo": {curr_* ...}}
#
# This module validates that post and turns product captures into
# REQUEST_TASK messages whose ``data`` is the JSON-encoded capture.

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .protocol import Message, MessageType

logger = logging.getLogger(__name__)

PRODUCT_ENDPOINT_MARKER = "wareBusiness"


@dataclass
class ProductInfo:
    """Product metadata read from the page's ``pageConfig.product``."""
    shop_id: Any = None
    main_pic: Optional[str] = None
    color_size: Any = None
    cat_id: Any = None
    cat_name: Any = None
    image_list: List[str] = field(default_factory=list)
    vender_id: Any = None

    @classmethod
    def from_extra_info(cls, extra: Optional[Mapping[str, Any]]) -> "ProductInfo":
        extra = extra or {}
        images = extra.get("curr_image_list") or []
        if not isinstance(images, list):
            images = [images]
        return cls(
            shop_id=extra.get("curr_shop_id"),
            main_pic=extra.get("curr_main_pic"),
            color_size=extra.get("curr_colorSize"),
            cat_id=extra.get("curr_cat_id"),
            cat_name=extra.get("curr_cat_name"),
            image_list=images,
            vender_id=extra.get("curr_vender_id"),
        )

    def to_extra_info(self) -> Dict[str, Any]:
        """Back to the page script's ``curr_*`` key names."""
        return {
            "curr_shop_id": self.shop_id,
            "curr_main_pic": self.main_pic,
            "curr_colorSize": self.color_size,
            "curr_cat_id": self.cat_id,
            "curr_cat_name": self.cat_name,
            "curr_image_list": list(self.image_list),
            "curr_vender_id": self.vender_id,
        }


@dataclass
class PageCapture:
    """One intercepted page request."""
    url: str
    data: Any = None
    product: ProductInfo = field(default_factory=ProductInfo)

    @classmethod
    def from_post(cls, post: Mapping[str, Any]) -> "PageCapture":
        """Parse a cross-context post.

        Raises:
            ValueError: If ``url`` is missing or not a string.
        """
        url = post.get("url")
        if not isinstance(url, str) or not url:
            raise ValueError("Capture is missing 'url'")
        return cls(
            url=url,
            data=post.get("data"),
            product=ProductInfo.from_extra_info(post.get("extraInfo")),
        )

    def is_product_capture(self) -> bool:
        return PRODUCT_ENDPOINT_MARKER in self.url

    def to_payload(self) -> str:
        """JSON body forwarded to the task API."""
        return json.dumps(
            {
                "url": self.url,
                "data": self.data,
                "extraInfo": self.product.to_extra_info(),
            },
            ensure_ascii=False,
        )

    def to_task_message(self) -> Message:
        return Message(type=MessageType.REQUEST_TASK, data=self.to_payload())


def capture_to_message(post: Mapping[str, Any]) -> Optional[Message]:
    """REQUEST_TASK message for a product capture, None for anything else."""
    try:
        capture = PageCapture.from_post(post)
    except ValueError as exc:
        logger.debug("Dropping malformed capture: %s", exc)
        return None
    if not capture.is_product_capture():
        return None
    return capture.to_task_message()

