"""
遥测数据构建模块
===============

负责把管线输出构建为 JSON 友好的遥测字典，并按间隔输出到日志。
"""
import json
import time
from typing import Optional, Dict, Any
import numpy as np
from .logger import logger


def format_floats(obj: Any) -> Any:
    """
    递归格式化对象中的浮点数为3位小数

    Args:
        obj: 要格式化的对象（dict、list、tuple、float、ndarray等）

    Returns:
        格式化后的对象
    """
    if isinstance(obj, dict):
        return {k: format_floats(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [format_floats(item) for item in obj]
    elif isinstance(obj, float):
        return round(obj, 3)
    elif isinstance(obj, np.ndarray):
        return [format_floats(x) for x in obj.tolist()]
    elif isinstance(obj, np.generic):
        val = obj.item()
        return round(val, 3) if isinstance(val, float) else val
    else:
        return obj


def _vec(value) -> Optional[list]:
    if value is None:
        return None
    return [float(v) for v in value]


class TelemetryBuilder:
    """
    遥测数据构建器

    职责:
    - 从 PipelineOutput 构建 telemetry 字典
    - 格式化浮点数为固定精度
    - 每 N 帧输出一次 JSON 格式的 telemetry

    使用示例:
        builder = TelemetryBuilder(print_enabled=True, print_interval=30)

        output = pipeline.update(landmarks, 640, 480)
        telemetry = builder.build(output, pipeline_stats=pipeline.get_stats())
    """

    def __init__(
        self,
        print_enabled: bool = True,
        print_interval: int = 30
    ):
        """
        初始化遥测构建器

        Args:
            print_enabled: 是否启用 telemetry 输出
            print_interval: 输出间隔（每N帧输出一次）
        """
        self.print_enabled = print_enabled
        self.print_interval = max(1, print_interval)
        self._last_telemetry: Optional[Dict[str, Any]] = None

    def build(
        self,
        output: Any,
        pipeline_stats: Optional[Dict[str, Any]] = None,
        async_stats: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        构建 telemetry 数据

        Args:
            output: PipelineOutput
            pipeline_stats: HeadTrackingPipeline.get_stats()（可选）
            async_stats: AsyncDetectorRunner.get_stats()（可选）

        Returns:
            telemetry 字典
        """
        pose = output.pose
        transform = output.transform
        calibration = output.calibration
        fit_quality = output.fit_quality

        telemetry = {
            "frame_index": output.frame_index,
            "state": output.state.value,
            "visible": bool(output.visible),
            "fresh": bool(output.fresh),
            "tracking_lost": bool(output.tracking_lost),
            "error": output.error,

            # 滤波后的位姿
            "pose": {
                "position": _vec(pose.position) if pose else None,
                "euler": _vec(pose.euler) if pose else None,
                "scale": _vec(pose.scale) if pose else None,
                "confidence": float(pose.confidence) if pose else None,
            },

            # 渲染变换
            "transform": transform.to_dict() if transform else None,

            # 尺度标定
            "calibration": {
                "final_scale": calibration.final_scale,
                "overall_factor": calibration.overall_scale_factor,
                "distance_mm": calibration.distance_mm,
                "is_fallback": calibration.is_fallback,
                "valid_until_frame": calibration.valid_until_frame,
            } if calibration else None,

            # 贴合质量
            "fit_quality": fit_quality.to_dict() if fit_quality else None,

            "timestamp": time.time(),
        }

        if pipeline_stats:
            rates = pipeline_stats.get("rates", {})
            telemetry["pipeline"] = {
                "update_rate": rates.get("update_rate"),
                "detection_rate": rates.get("detection_rate"),
                "hit_ratio": rates.get("hit_ratio"),
                "lost_events": pipeline_stats.get("lost_events", 0),
                "skipped_total": pipeline_stats.get("skipped_total", 0),
                "confidence_unstable": pipeline_stats.get("confidence_unstable", False),
                "morphology": pipeline_stats.get("fitting", {}).get("morphology"),
            }

        if async_stats:
            telemetry["async_detection"] = self._format_async_stats(async_stats)

        self._last_telemetry = telemetry
        self._print_if_enabled(telemetry, output.frame_index)

        return telemetry

    def _print_if_enabled(self, telemetry: Dict[str, Any], frame_index: int):
        if not self.print_enabled:
            return

        if frame_index % self.print_interval != 0:
            return

        formatted_telemetry = format_floats(telemetry)
        logger.info(f"[Telemetry] {json.dumps(formatted_telemetry, ensure_ascii=False)}")

    def get_last_telemetry(self) -> Optional[Dict[str, Any]]:
        """获取上一帧的 telemetry 数据"""
        return self._last_telemetry

    def reset(self):
        """重置 telemetry 缓存"""
        self._last_telemetry = None

    def _format_async_stats(self, stats: Dict[str, Any]) -> Dict[str, Any]:
        """格式化异步检测统计信息（仅包含关键指标）"""
        processed = stats.get("tasks_processed", 0)
        return {
            "tasks_submitted": stats.get("tasks_submitted", 0),
            "tasks_processed": processed,
            "tasks_dropped": stats.get("tasks_dropped", 0),
            "last_detect_ms": round(stats.get("last_detect_time", 0) * 1000, 1) if stats.get("last_detect_time") else None,
            "avg_detect_ms": round(
                (stats.get("total_detect_time", 0) / processed) * 1000, 1
            ) if processed > 0 else None,
            "worker_active": stats.get("worker_active", False),
            "errors": stats.get("errors", 0)
        }
