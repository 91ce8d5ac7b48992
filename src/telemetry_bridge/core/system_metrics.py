import datetime
import time
from typing import Dict
import psutil


def collect_system_metrics() -> Dict[str, str]:
    """Host uptime, CPU load and memory usage as display strings.

    Blocking; call it through ``asyncio.to_thread`` from handlers.
    """
    uptime_seconds = time.time() - psutil.boot_time()
    uptime = str(datetime.timedelta(seconds=int(uptime_seconds)))

    memory = psutil.virtual_memory()

    return {
        "uptime": uptime,
        "cpu": f"{psutil.cpu_percent(interval=None):.1f}",
        "memory": f"{memory.percent:.1f}%",
    }
