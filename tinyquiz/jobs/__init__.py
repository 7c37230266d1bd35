from tinyquiz.jobs.cleanup import cleanup_job, run_cleanup, schedule_cleanup

__all__ = ["cleanup_job", "run_cleanup", "schedule_cleanup"]
