from setuptools import setup

with open("README.md") as f:
    readme = f.read()

_ = setup(
    name="ccview",
    version="1.0.0",
    license="MIT",
    long_description=readme,
    long_description_content_type="text/markdown",
    install_requires=[
        "asn1crypto~=1.5.1",
        "impacket~=0.12.0",
        "pyasn1~=0.6.1",
        "argcomplete",
    ],
    extras_require={
        "test": ["pytest"],
    },
    packages=[
        "ccview",
        "ccview.commands",
        "ccview.commands.parsers",
        "ccview.lib",
    ],
    entry_points={
        "console_scripts": ["ccview=ccview.entry:main"],
    },
    description="Kerberos credential cache viewer and ticket decryptor",
)
