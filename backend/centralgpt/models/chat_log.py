# centralgpt/models/chat_log.py
from tortoise import fields, models

class ChatLog(models.Model):
    id = fields.IntField(pk=True)  # Autoincrement, breaks ties between equal timestamps
    user = fields.ForeignKeyField("models.User", related_name="chat_logs", on_delete=fields.CASCADE)

    role = fields.CharField(max_length=8)  # "user" or "model"
    content = fields.TextField()
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "chat_logs"
