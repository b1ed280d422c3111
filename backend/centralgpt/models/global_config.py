# centralgpt/models/global_config.py
from tortoise import fields, models

# The app_config table holds exactly one row under this id
GLOBAL_CONFIG_ID = 1

class GlobalConfig(models.Model):
    """
    Global assistant configuration shared by every session.
    api_keys is an ordered list; the order is the failover priority.
    """
    id = fields.IntField(pk=True, generated=False, default=GLOBAL_CONFIG_ID)
    ai_name = fields.CharField(max_length=128, default="CentralGPT")
    ai_persona = fields.TextField(null=True)
    dev_name = fields.CharField(max_length=128, default="XdpzQ")
    api_keys = fields.JSONField(default=list)
    avatar_url = fields.CharField(max_length=1024, default="")

    class Meta:
        table = "app_config"
