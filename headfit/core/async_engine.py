"""
异步检测执行器
提供后台线程执行关键点检测，避免阻塞渲染主循环
"""

import threading
import queue
import time
import traceback
from collections import deque
from typing import Optional, Callable, Any, Deque, Dict
from dataclasses import dataclass
from .logger import logger


@dataclass
class DetectionTask:
    """检测任务封装"""
    task_id: int
    frame: Any
    frame_index: int
    submit_time: float


@dataclass
class DetectionResult:
    """检测结果封装"""
    task_id: int
    frame_index: int
    landmarks: Any  # LandmarkSet 或 None（无人脸 / 检测失败）
    detect_time: float
    submit_time: float
    complete_time: float
    source: str  # 'detection', 'error'

    @property
    def latency(self) -> float:
        """提交到完成的总延迟（秒）"""
        return self.complete_time - self.submit_time


class AsyncDetectorRunner:
    """
    异步检测执行器

    负责在后台线程运行检测器，主线程只需提交帧并轮询完成的结果

    特性:
    - 单线程执行检测，同一时间最多一个未完成的调用
    - 忙碌时新提交的帧直接丢弃
    - 完成结果按完成顺序排队，poll() 每次最多返回一个
    - 检测器异常记录日志，并以"无测量"结果交付
    - 支持优雅关闭
    """

    def __init__(
        self,
        detector: Callable[[Any], Any],
        name: str = "FaceMesh",
        max_pending_results: int = 4,
        enable_logging: bool = True
    ):
        """
        初始化异步检测执行器

        Args:
            detector: 检测函数，签名 detector(frame) -> LandmarkSet | None
            name: 执行器名称，用于日志
            max_pending_results: 完成队列最大长度（溢出时丢弃最旧结果）
            enable_logging: 是否启用详细日志
        """
        self.detector = detector
        self.name = name
        self.enable_logging = enable_logging

        # 任务队列（深度1）
        self.task_queue: queue.Queue = queue.Queue(maxsize=1)

        # 完成结果（按完成顺序）
        self._result_lock = threading.Lock()
        self._completed: Deque[DetectionResult] = deque(maxlen=max(1, max_pending_results))

        # 是否有未完成的调用（排队中或执行中）
        self._busy = threading.Event()

        # 工作线程
        self._worker_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._next_task_id = 0

        # 统计信息
        self._stats_lock = threading.Lock()
        self._stats = {
            'tasks_submitted': 0,
            'tasks_dropped': 0,
            'tasks_processed': 0,
            'results_overwritten': 0,
            'total_detect_time': 0.0,
            'last_detect_time': 0.0,
            'errors': 0,
            'worker_active': False
        }

        # 最后异常
        self.last_exception: Optional[Exception] = None

    def start(self):
        """启动后台工作线程"""
        if self._worker_thread is not None and self._worker_thread.is_alive():
            logger.warning(f"[{self.name}] Worker thread already running")
            return

        self._stop_event.clear()
        self._worker_thread = threading.Thread(
            target=self._worker_loop,
            name=f"{self.name}_AsyncWorker",
            daemon=True
        )
        self._worker_thread.start()
        logger.info(f"[{self.name}] Async worker thread started")

    def stop(self, timeout: float = 5.0):
        """
        停止后台工作线程

        Args:
            timeout: 等待线程退出的超时时间（秒）
        """
        if self._worker_thread is None:
            return

        logger.info(f"[{self.name}] Stopping async worker...")
        self._stop_event.set()

        # 清空队列，避免阻塞
        try:
            while not self.task_queue.empty():
                self.task_queue.get_nowait()
        except queue.Empty:
            pass

        self._worker_thread.join(timeout=timeout)
        if self._worker_thread.is_alive():
            logger.warning(f"[{self.name}] Worker thread did not exit within {timeout}s")
        else:
            logger.info(f"[{self.name}] Async worker stopped")
        self._worker_thread = None
        self._busy.clear()

    @property
    def is_busy(self) -> bool:
        return self._busy.is_set()

    def submit(self, frame: Any, frame_index: int = -1) -> bool:
        """
        提交检测任务

        Args:
            frame: 图像帧
            frame_index: 采集帧序号（仅用于追踪）

        Returns:
            bool: 是否成功提交（有未完成调用时丢弃并返回False）
        """
        with self._stats_lock:
            self._stats['tasks_submitted'] += 1
            task_id = self._next_task_id
            self._next_task_id += 1

            if self._busy.is_set():
                self._stats['tasks_dropped'] += 1
                if self.enable_logging:
                    logger.debug(f"[{self.name}] Busy, dropping frame {frame_index}")
                return False
            self._busy.set()

        task = DetectionTask(
            task_id=task_id,
            frame=frame,
            frame_index=frame_index,
            submit_time=time.monotonic()
        )
        try:
            self.task_queue.put_nowait(task)
        except queue.Full:
            with self._stats_lock:
                self._stats['tasks_dropped'] += 1
            return False

        if self.enable_logging:
            logger.debug(f"[{self.name}] Task #{task_id} submitted (frame {frame_index})")
        return True

    def poll(self) -> Optional[DetectionResult]:
        """
        取出最早完成的一个结果（线程安全）

        Returns:
            DetectionResult or None: 没有新完成的结果时返回None
        """
        with self._result_lock:
            if not self._completed:
                return None
            return self._completed.popleft()

    def pending_results(self) -> int:
        with self._result_lock:
            return len(self._completed)

    def get_stats(self) -> Dict:
        """获取统计信息（线程安全）"""
        with self._stats_lock:
            return self._stats.copy()

    def _worker_loop(self):
        """后台工作线程的主循环"""
        logger.info(f"[{self.name}] Worker loop started")

        with self._stats_lock:
            self._stats['worker_active'] = True

        try:
            while not self._stop_event.is_set():
                try:
                    # 阻塞获取任务，超时0.1秒以便检查stop_event
                    task = self.task_queue.get(timeout=0.1)
                except queue.Empty:
                    continue

                try:
                    self._process_task(task)
                finally:
                    self._busy.clear()

        except Exception as e:
            logger.error(f"[{self.name}] Worker loop crashed: {e}")
            logger.error(traceback.format_exc())
            self.last_exception = e
        finally:
            with self._stats_lock:
                self._stats['worker_active'] = False
            logger.info(f"[{self.name}] Worker loop exited")

    def _process_task(self, task: DetectionTask):
        """
        处理单个检测任务

        Args:
            task: 检测任务
        """
        start_time = time.monotonic()
        source = 'detection'

        try:
            landmarks = self.detector(task.frame)
        except Exception as e:
            logger.error(f"[{self.name}] Error processing task #{task.task_id}: {e}")
            logger.debug(traceback.format_exc())
            with self._stats_lock:
                self._stats['errors'] += 1
            self.last_exception = e
            # 检测失败按"无测量"交付
            landmarks = None
            source = 'error'

        complete_time = time.monotonic()
        result = DetectionResult(
            task_id=task.task_id,
            frame_index=task.frame_index,
            landmarks=landmarks,
            detect_time=complete_time - start_time,
            submit_time=task.submit_time,
            complete_time=complete_time,
            source=source
        )

        with self._result_lock:
            if len(self._completed) == self._completed.maxlen:
                with self._stats_lock:
                    self._stats['results_overwritten'] += 1
            self._completed.append(result)

        with self._stats_lock:
            self._stats['tasks_processed'] += 1
            self._stats['total_detect_time'] += result.detect_time
            self._stats['last_detect_time'] = result.detect_time

        if self.enable_logging:
            logger.debug(
                f"[{self.name}] Task #{task.task_id} completed "
                f"in {result.detect_time*1000:.1f}ms"
            )
