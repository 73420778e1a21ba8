"""
消息总线 - 解耦渠道与对话驱动器的异步队列
Message bus - asynchronous queues decoupling channels from the conversation driver.

每个队列要么缓存消息（生产快于消费），要么排队等待者（消费快于生产），
两者互斥。发布时优先直接交给最早的等待者，否则进入缓冲区。
Each queue holds either buffered items (production outpaced consumption)
or pending consumers (consumption outpaced production), never both.
Publishing hands the item to the oldest pending consumer if there is one,
otherwise buffers it.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Generic, TypeVar

from PocketAgent.bus.events import InboundMessage, OutboundMessage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HandoffQueue(Generic[T]):
    """
    交接队列 - 无界、先进先出、每条消息恰好投递一次
    Handoff queue - unbounded, FIFO, exactly-once delivery.
    """

    def __init__(self, name: str = "") -> None:
        self._name = name
        self._items: deque[T] = deque()
        self._waiters: deque[asyncio.Future[T]] = deque()

    def publish(self, item: T) -> None:
        """
        发布一条消息（不阻塞）
        Publish an item without blocking.
        """
        if not self._hand_off(item):
            self._items.append(item)

    def _hand_off(self, item: T) -> bool:
        while self._waiters:
            waiter = self._waiters.popleft()
            # 已取消的等待者不再接收消息
            if waiter.done():
                continue
            waiter.set_result(item)
            return True
        return False

    async def consume(self) -> T:
        """
        消费一条消息，队列为空时挂起
        Consume an item, suspending while the queue is empty.
        """
        if self._items:
            return self._items.popleft()

        waiter: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            return await waiter
        except asyncio.CancelledError:
            if waiter in self._waiters:
                self._waiters.remove(waiter)
            elif waiter.done() and not waiter.cancelled():
                # 消息已交付但消费者在恢复前被取消：交给下一个等待者或放回队首
                item = waiter.result()
                if not self._hand_off(item):
                    self._items.appendleft(item)
                logger.debug("队列 %s 的消费者被取消，消息已退回", self._name)
            raise

    @property
    def size(self) -> int:
        """缓冲区深度 / Number of buffered items."""
        return len(self._items)

    @property
    def waiting(self) -> int:
        """等待中的消费者数 / Number of pending consumers."""
        return sum(1 for w in self._waiters if not w.done())

    def clear(self) -> None:
        """清空缓冲区并取消所有等待者 / Drop buffered items and cancel waiters."""
        dropped = len(self._items)
        self._items.clear()
        for waiter in self._waiters:
            if not waiter.done():
                waiter.cancel()
        self._waiters.clear()
        if dropped:
            logger.debug("队列 %s 已丢弃 %d 条消息", self._name, dropped)


class MessageBus:
    """
    消息总线 - 入站与出站两条独立队列
    Message bus - two independent queues, inbound and outbound.

    渠道把消息发布到入站队列，对话驱动器处理后把回复发布到出站队列。
    出站队列是所有渠道共享的，渠道按 channel 字段过滤。
    Channels publish to the inbound queue; the driver publishes replies to
    the single shared outbound queue, which is routed by ``channel``.
    """

    def __init__(self) -> None:
        self._inbound: HandoffQueue[InboundMessage] = HandoffQueue("inbound")
        self._outbound: HandoffQueue[OutboundMessage] = HandoffQueue("outbound")

    async def publish_inbound(self, msg: InboundMessage) -> None:
        """发布入站消息 / Publish an inbound message."""
        self._inbound.publish(msg)

    async def consume_inbound(self) -> InboundMessage:
        """消费入站消息 / Consume the next inbound message."""
        return await self._inbound.consume()

    async def publish_outbound(self, msg: OutboundMessage) -> None:
        """发布出站消息 / Publish an outbound message."""
        self._outbound.publish(msg)

    async def consume_outbound(self) -> OutboundMessage:
        """消费出站消息 / Consume the next outbound message."""
        return await self._outbound.consume()

    @property
    def inbound_size(self) -> int:
        return self._inbound.size

    @property
    def outbound_size(self) -> int:
        return self._outbound.size

    def clear(self) -> None:
        """清空两条队列 / Clear both queues."""
        self._inbound.clear()
        self._outbound.clear()
