from ZODB.config import BaseConfig

import io
import os
import ZConfig


_schema = None


def get_schema():
    global _schema
    if _schema is None:
        _schema = ZConfig.loadSchema(
            os.path.join(os.path.dirname(__file__), "schema.xml")
        )
    return _schema


def load_config(path):
    config, _handler = ZConfig.loadConfig(get_schema(), path)
    return config


def config_from_string(text):
    config, _handler = ZConfig.loadConfigFile(get_schema(), io.StringIO(text))
    return config


class S3ProviderFactory(BaseConfig):
    """ZConfig factory for S3Provider. The section name is the provider id."""

    def open(self, call_timeout=10):
        from zodb_filevault.s3provider import S3Provider

        config = self.config
        return S3Provider(
            provider_id=self.name,
            bucket_name=config.bucket_name,
            prefix=config.s3_prefix,
            endpoint_url=config.s3_endpoint_url,
            region_name=config.s3_region,
            aws_access_key_id=config.s3_access_key,
            aws_secret_access_key=config.s3_secret_key,
            use_ssl=config.s3_use_ssl,
            addressing_style=config.s3_addressing_style,
            connect_timeout=call_timeout,
            read_timeout=call_timeout,
        )


class GCSProviderFactory(BaseConfig):
    """ZConfig factory for GCSProvider."""

    def open(self, call_timeout=10):
        from zodb_filevault.gcsprovider import GCSProvider

        config = self.config
        return GCSProvider(
            provider_id=self.name,
            bucket_name=config.bucket_name,
            project=config.gcs_project,
            credentials_file=config.gcs_credentials_file,
            prefix=config.gcs_prefix,
            timeout=call_timeout,
        )
