import logging
import time
from datetime import datetime
from typing import Dict

logger = logging.getLogger(__name__)

# Sweeps older than this many intervals mark the report as degraded
STALE_SWEEP_FACTOR = 3


class CurfewHealthChecker:
    """Health monitoring for the curfew subsystem"""

    def __init__(self, store, enforcer, sweep_interval: int = 60):
        self.store = store
        self.enforcer = enforcer
        self.sweep_interval = sweep_interval

    def health_check(self) -> Dict:
        """Reports store contents, last sweep results and overall status"""
        current_time = time.time()

        health_report = {
            'timestamp': current_time,
            'component': 'curfew',
            'status': 'healthy',
            'checks': {},
            'issues': []
        }

        try:
            health_report['checks']['store'] = self.store.stats()
        except Exception as e:
            health_report['checks']['store'] = 'error'
            health_report['issues'].append(f"Rule store error: {e}")

        last_sweep = self.enforcer.last_sweep
        health_report['checks']['sweep_running'] = self.enforcer.sweep_running
        health_report['checks']['skipped_ticks'] = self.enforcer.skipped_ticks
        health_report['checks']['last_sweep'] = last_sweep

        if last_sweep is None:
            health_report['checks']['last_sweep_age'] = None
        else:
            finished = datetime.fromisoformat(last_sweep['finished_at']).timestamp()
            age = current_time - finished
            health_report['checks']['last_sweep_age'] = age

            if age > self.sweep_interval * STALE_SWEEP_FACTOR:
                health_report['issues'].append(f"Last sweep finished {int(age)}s ago")
            if last_sweep.get('errors'):
                health_report['issues'].append(f"Last sweep had {last_sweep['errors']} errors")

        if health_report['issues']:
            health_report['status'] = 'degraded'

        logger.debug(f"Curfew health check completed: {health_report['status']}")
        return health_report
