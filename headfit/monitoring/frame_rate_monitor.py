"""
更新频率监控模块
===============

封装管线更新频率与检测频率的统计逻辑。
"""
import time
from typing import Optional
from ..core.logger import logger


class _RateEMA:
    """单路频率统计（EMA 平滑）"""

    def __init__(self, smoothing: float):
        self.smoothing = smoothing
        self.last_time: Optional[float] = None
        self.rate: float = 0.0
        self.interval: float = 0.0
        self.count: int = 0

    def tick(self, current_time: float):
        if self.last_time is not None:
            elapsed = current_time - self.last_time
            if elapsed > 0:
                current_rate = 1.0 / elapsed
                # 第一个间隔直接使用当前值，之后使用 EMA
                if self.count <= 1:
                    self.rate = current_rate
                else:
                    self.rate = self.smoothing * self.rate + (1 - self.smoothing) * current_rate
                self.interval = elapsed
        self.last_time = current_time
        self.count += 1

    def reset(self):
        self.last_time = None
        self.rate = 0.0
        self.interval = 0.0
        self.count = 0


class UpdateRateMonitor:
    """
    更新频率监控器

    职责:
    - 统计管线 update 调用频率（每帧调用一次）
    - 统计有效检测的频率（检测可能跨帧、丢失）
    - 统计检测命中率（EMA）

    使用示例:
        monitor = UpdateRateMonitor(smoothing=0.9)

        while True:
            monitor.update(detected=landmarks is not None)
            print(f"update: {monitor.get_update_rate():.1f}Hz, "
                  f"detect: {monitor.get_detection_rate():.1f}Hz")
    """

    def __init__(self, smoothing: float = 0.9):
        """
        初始化监控器

        Args:
            smoothing: EMA 平滑系数（0.0-1.0），越大越平滑
        """
        self.smoothing = max(0.0, min(1.0, smoothing))  # 限制在 [0, 1]
        self._updates = _RateEMA(self.smoothing)
        self._detections = _RateEMA(self.smoothing)
        self.hit_ratio: float = 0.0

    def update(self, timestamp: Optional[float] = None, detected: bool = True):
        """
        记录一次更新

        Args:
            timestamp: 时间戳（秒），默认使用 time.monotonic()
            detected: 本次更新是否带有检测结果
        """
        current_time = timestamp if timestamp is not None else time.monotonic()

        self._updates.tick(current_time)
        if detected:
            self._detections.tick(current_time)

        hit = 1.0 if detected else 0.0
        if self._updates.count == 1:
            self.hit_ratio = hit
        else:
            self.hit_ratio = self.smoothing * self.hit_ratio + (1 - self.smoothing) * hit

    def get_update_rate(self) -> float:
        """平滑后的更新频率（Hz）"""
        return self._updates.rate

    def get_detection_rate(self) -> float:
        """平滑后的检测频率（Hz）"""
        return self._detections.rate

    def get_interval_ms(self) -> float:
        """最后一次更新间隔（毫秒）"""
        return self._updates.interval * 1000.0

    @property
    def update_count(self) -> int:
        return self._updates.count

    @property
    def detection_count(self) -> int:
        return self._detections.count

    def reset(self):
        """重置所有统计"""
        self._updates.reset()
        self._detections.reset()
        self.hit_ratio = 0.0
        logger.debug("UpdateRateMonitor: 已重置")

    def get_stats(self) -> dict:
        return {
            'update_rate': self._updates.rate,
            'detection_rate': self._detections.rate,
            'hit_ratio': self.hit_ratio,
            'interval_ms': self._updates.interval * 1000.0,
            'update_count': self._updates.count,
            'detection_count': self._detections.count,
        }

    def __repr__(self) -> str:
        return (
            f"UpdateRateMonitor(update={self._updates.rate:.2f}Hz, "
            f"detect={self._detections.rate:.2f}Hz, hit={self.hit_ratio:.2f})"
        )
