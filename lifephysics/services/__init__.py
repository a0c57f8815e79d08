"""
Application services for Life Physics.

- ``tracker_service``: the per-user tracker (task state machine, rewards,
  progression, avatars) with a write-through hook
- ``sync_service``: cloud persistence for signed-in users
- ``local_store``: JSON snapshots for guests on the device
- ``analytics_service``: analytics and history read models
"""
