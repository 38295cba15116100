# Initialize version as unknown
version = "?"

try:
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as get_version

    version = get_version("ccview")
except PackageNotFoundError:
    print(
        "Cannot determine ccview version. "
        'If running from source you should at least run "python setup.py egg_info"'
    )

BANNER = "ccview v{} - Kerberos credential cache viewer\n".format(version)
