from rest_framework import exceptions
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from common.permissions import user_job_title, user_role


class RoleAwareTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Accepts username and password.
    Embeds the agency role and job title in the resulting tokens.
    """

    def validate(self, attrs):
        # Let SimpleJWT authenticate the user (sets self.user)
        data = super().validate(attrs)

        role = user_role(self.user)
        if not role:
            raise exceptions.AuthenticationFailed("User has no active staff profile")
        job_title = user_job_title(self.user)

        # Build fresh tokens WITH custom claims (ignore the ones created by super())
        refresh = self.get_token(self.user)
        refresh["role"] = str(role)
        refresh["job_title"] = str(job_title)

        data["refresh"] = str(refresh)
        data["access"] = str(refresh.access_token)
        data["role"] = str(role)
        data["job_title"] = str(job_title)
        return data
